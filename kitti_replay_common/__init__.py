"""Instrumentation shared by the replay pipeline and its transports.

This package hosts modules that do not care how frames are delivered
(KPI event logging, tick timing statistics).
"""
