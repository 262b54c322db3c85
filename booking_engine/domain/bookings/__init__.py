"""Booking lifecycle: creation, assignment and status transitions"""
