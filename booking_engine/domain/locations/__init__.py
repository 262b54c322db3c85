"""Location graph: distance tiers between suburbs of a town"""
