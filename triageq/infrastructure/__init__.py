"""Infrastructure - environment loading"""
