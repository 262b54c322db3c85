"""Pricing and payout calculation plus the platform settings store"""
