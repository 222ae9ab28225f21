"""
Scheduling domain: bookings, the calendar, cleaner assignment, the job
lifecycle and customer feedback.
"""
