"""
Clinic business services.

Routers call these for anything spanning more than one table: booking
and rescheduling appointments, stock and payment rules for implant
materials, the audit trail and the scheduled background jobs.
"""
