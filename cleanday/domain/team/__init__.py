"""Team domain: cleaner profiles, schedules and time off"""
