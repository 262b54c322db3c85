"""Recurring schedules: templates expanded into a bounded series of bookings"""
