from .account import Account, AccountType
from .auditlog import AuditLog
from .banking import (BankAccount, BankTransaction, BankTransactionMatch,
                      MatchedType)
from .bill import ApprovalStatus, Bill, BillLine, BillStatus
from .company import Company
from .invoice import (Invoice, InvoiceLine, InvoiceStatus,
                      RecurringFrequency)
from .journal import JournalEntry, JournalLine, ReferenceType
from .payment import Payment, PaymentType
from .recurring import (RecurringRun, RecurringTransaction,
                        RecurringTransactionType)
from .sequence import DocumentSequence, SequenceKind
