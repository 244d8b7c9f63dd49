"""Scheduling domain - appointments, conflict detection and work order linkage"""
