"""Runtime - versioned triage settings"""
