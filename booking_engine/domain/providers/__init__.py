"""Provider directory filter and assignment selector"""
