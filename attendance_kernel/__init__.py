"""
Attendance Kernel

Attendance period lifecycle and payroll calculation core:
- Idempotent ingestion of biometric terminal punches
- Period state machine (PENDING -> FINALIZED -> LOCKED, explicit unlock)
- Daily/weekly overtime payroll from finalized attendance
- Full auditability via hash chain
"""

__version__ = "0.1.0"
