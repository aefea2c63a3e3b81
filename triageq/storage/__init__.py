"""Storage - domain records shared by every triage stage"""
