"""
Outbound collaborators of a run.

Public API:
- DriveAssetStore (batch folders, label files)
- SheetsAuditSink (Orders / Batches audit rows)
- SmtpNotifier (Hold order emails)
- SqlOrderStatusWriter (Processed / Hold write-back)
"""
from .drive import DriveAssetStore
from .sheets import SheetsAuditSink
from .mailer import SmtpNotifier
from .status_writer import SqlOrderStatusWriter, StatusWriteError

__all__ = ["DriveAssetStore",
           "SheetsAuditSink",
             "SmtpNotifier",
             "SqlOrderStatusWriter",
               "StatusWriteError"
               ]
