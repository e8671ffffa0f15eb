import decimal
import django.core.serializers.json
import django.db.models.deletion
import django.db.models.functions.comparison
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name_plural": "companies",
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=20)),
                ("name", models.CharField(max_length=255)),
                ("ac_type", models.CharField(choices=[("asset", "Asset"), ("liability", "Liability"), ("equity", "Equity"), ("revenue", "Revenue"), ("expense", "Expense")], max_length=10)),
                ("description", models.TextField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("is_control_account", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="ledger_core.account")),
            ],
            options={
                "ordering": ("company", django.db.models.functions.comparison.Cast("code", models.BigIntegerField()), "code"),
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("reference_type", models.CharField(choices=[("invoice", "Invoice"), ("bill", "Bill"), ("payment", "Payment"), ("adjustment", "Adjustment"), ("reversal", "Reversal")], max_length=20)),
                ("reference_id", models.CharField(max_length=64)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("posting_fingerprint", models.CharField(max_length=64)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("date", "id"),
                "verbose_name_plural": "journal entries",
            },
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_date", models.DateField()),
                ("description", models.CharField(blank=True, max_length=400, null=True)),
                ("debit", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="journal_lines", to="ledger_core.account")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("journal", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.journalentry")),
            ],
            options={
                "ordering": ("journal", "id"),
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=64)),
                ("customer_id", models.CharField(max_length=64)),
                ("load_id", models.CharField(blank=True, max_length=64, null=True)),
                ("issue_date", models.DateField()),
                ("due_date", models.DateField()),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("amount_paid", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("sent", "Sent"), ("partial", "Partially paid"), ("paid", "Paid"), ("overdue", "Overdue"), ("cancelled", "Cancelled")], default="draft", max_length=10)),
                ("terms", models.CharField(default="Net 30", max_length=50)),
                ("memo", models.TextField(blank=True, null=True)),
                ("aging_days", models.IntegerField(default=0)),
                ("is_recurring", models.BooleanField(default=False)),
                ("recurring_frequency", models.CharField(blank=True, choices=[("weekly", "Weekly"), ("monthly", "Monthly"), ("quarterly", "Quarterly"), ("yearly", "Yearly")], max_length=20, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.TextField(blank=True, null=True)),
                ("quantity", models.DecimalField(decimal_places=4, default=decimal.Decimal("1"), max_digits=14)),
                ("rate", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("account", models.ForeignKey(blank=True, help_text="Revenue account for this line", null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.account")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.invoice")),
            ],
            options={
                "ordering": ("invoice", "id"),
            },
        ),
        migrations.CreateModel(
            name="Bill",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("vendor_id", models.CharField(max_length=64)),
                ("bill_number", models.CharField(max_length=64)),
                ("vendor_bill_number", models.CharField(blank=True, max_length=64, null=True)),
                ("bill_date", models.DateField()),
                ("due_date", models.DateField()),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("amount_paid", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("status", models.CharField(choices=[("received", "Received"), ("approved", "Approved"), ("paid", "Paid"), ("overdue", "Overdue")], default="received", max_length=10)),
                ("approval_status", models.CharField(choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")], default="pending", max_length=10)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("terms", models.CharField(default="Net 30", max_length=50)),
                ("memo", models.TextField(blank=True, null=True)),
                ("aging_days", models.IntegerField(default=0)),
                ("is_recurring", models.BooleanField(default=False)),
                ("recurring_frequency", models.CharField(blank=True, choices=[("weekly", "Weekly"), ("monthly", "Monthly"), ("quarterly", "Quarterly"), ("yearly", "Yearly")], max_length=20, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("approved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="approved_bills", to=settings.AUTH_USER_MODEL)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_bills", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="BillLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.TextField(blank=True, null=True)),
                ("category", models.CharField(blank=True, max_length=100, null=True)),
                ("quantity", models.DecimalField(decimal_places=4, default=decimal.Decimal("1"), max_digits=14)),
                ("rate", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18)),
                ("account", models.ForeignKey(blank=True, help_text="Expense account for this line", null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.account")),
                ("bill", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.bill")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
            options={
                "ordering": ("bill", "id"),
            },
        ),
        migrations.CreateModel(
            name="BankAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("account_number_masked", models.CharField(blank=True, max_length=50, null=True)),
                ("last_reconciled_at", models.DateField(blank=True, null=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("ledger_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bank_accounts", to="ledger_core.account")),
            ],
        ),
        migrations.CreateModel(
            name="BankTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_id", models.CharField(max_length=100)),
                ("posted_date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.bankaccount")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
        ),
        migrations.CreateModel(
            name="BankTransactionMatch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bank_transaction_id", models.CharField(max_length=100)),
                ("matched_type", models.CharField(choices=[("invoice", "Invoice"), ("bill", "Bill"), ("payment", "Payment")], max_length=10)),
                ("matched_id", models.CharField(max_length=64)),
                ("match_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("confidence", models.DecimalField(decimal_places=4, max_digits=5)),
                ("is_auto_matched", models.BooleanField(default=False)),
                ("is_manually_accepted", models.BooleanField(default=False)),
                ("matched_at", models.DateTimeField(auto_now_add=True)),
                ("accepted_at", models.DateTimeField(blank=True, null=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("matched_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("matched_at", "id"),
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_number", models.CharField(max_length=64)),
                ("payment_type", models.CharField(choices=[("invoice_payment", "Invoice payment"), ("bill_payment", "Bill payment"), ("adjustment", "Adjustment")], max_length=20)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("payment_method", models.CharField(choices=[("check", "Check"), ("ach", "ACH"), ("card", "Card"), ("cash", "Cash"), ("wire", "Wire")], max_length=10)),
                ("payment_date", models.DateField()),
                ("check_number", models.CharField(blank=True, max_length=50, null=True)),
                ("reference_number", models.CharField(blank=True, max_length=100, null=True)),
                ("memo", models.TextField(blank=True, null=True)),
                ("status", models.CharField(default="processed", max_length=20)),
                ("is_matched", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, to="ledger_core.bankaccount")),
                ("bill", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger_core.bill")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ("invoice", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger_core.invoice")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="RecurringTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("template_name", models.CharField(max_length=255)),
                ("transaction_type", models.CharField(choices=[("invoice", "Invoice"), ("bill", "Bill")], max_length=10)),
                ("frequency", models.CharField(choices=[("weekly", "Weekly"), ("monthly", "Monthly"), ("quarterly", "Quarterly"), ("yearly", "Yearly")], max_length=20)),
                ("next_run_date", models.DateField()),
                ("anchor_day", models.PositiveSmallIntegerField()),
                ("template_data", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("is_active", models.BooleanField(default=True)),
                ("last_run_date", models.DateField(blank=True, null=True)),
                ("last_error", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
            options={
                "ordering": ("next_run_date", "id"),
            },
        ),
        migrations.CreateModel(
            name="RecurringRun",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scheduled_date", models.DateField()),
                ("document_type", models.CharField(choices=[("invoice", "Invoice"), ("bill", "Bill")], max_length=10)),
                ("document_id", models.BigIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("template", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="runs", to="ledger_core.recurringtransaction")),
            ],
            options={
                "ordering": ("scheduled_date", "id"),
            },
        ),
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("invoice", "Invoice"), ("bill", "Bill"), ("payment", "Payment")], max_length=10)),
                ("last_value", models.PositiveIntegerField(default=0)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="ledger_core.company")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("created_at", "id"),
            },
        ),
        # ---------- Indexes ----------
        migrations.AddIndex(
            model_name="account",
            index=models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
        ),
        migrations.AddIndex(
            model_name="account",
            index=models.Index(fields=["company", "parent"], name="acct_company_parent_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["company", "date"], name="je_company_date_idx"),
        ),
        migrations.AddIndex(
            model_name="journalline",
            index=models.Index(fields=["company", "account"], name="jl_company_account_idx"),
        ),
        migrations.AddIndex(
            model_name="journalline",
            index=models.Index(fields=["company", "transaction_date"], name="jl_company_date_idx"),
        ),
        migrations.AddIndex(
            model_name="invoice",
            index=models.Index(fields=["company", "status"], name="inv_company_status_idx"),
        ),
        migrations.AddIndex(
            model_name="invoice",
            index=models.Index(fields=["company", "customer_id"], name="inv_company_customer_idx"),
        ),
        migrations.AddIndex(
            model_name="invoice",
            index=models.Index(fields=["company", "due_date"], name="inv_company_due_idx"),
        ),
        migrations.AddIndex(
            model_name="invoiceline",
            index=models.Index(fields=["company", "invoice"], name="invl_company_invoice_idx"),
        ),
        migrations.AddIndex(
            model_name="bill",
            index=models.Index(fields=["company", "status"], name="bill_company_status_idx"),
        ),
        migrations.AddIndex(
            model_name="bill",
            index=models.Index(fields=["company", "vendor_id"], name="bill_company_vendor_idx"),
        ),
        migrations.AddIndex(
            model_name="bill",
            index=models.Index(fields=["company", "due_date"], name="bill_company_due_idx"),
        ),
        migrations.AddIndex(
            model_name="billline",
            index=models.Index(fields=["company", "bill"], name="billl_company_bill_idx"),
        ),
        migrations.AddIndex(
            model_name="banktransaction",
            index=models.Index(fields=["company", "posted_date"], name="bt_company_date_idx"),
        ),
        migrations.AddIndex(
            model_name="banktransactionmatch",
            index=models.Index(fields=["company", "bank_transaction_id"], name="btm_company_bt_idx"),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(fields=["company", "payment_date"], name="pay_company_date_idx"),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(fields=["company", "payment_type"], name="pay_company_type_idx"),
        ),
        migrations.AddIndex(
            model_name="recurringtransaction",
            index=models.Index(fields=["is_active", "next_run_date"], name="rt_active_next_run_idx"),
        ),
        migrations.AddIndex(
            model_name="auditlog",
            index=models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
        ),
        migrations.AddIndex(
            model_name="auditlog",
            index=models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
        ),
        # ---------- Constraints ----------
        migrations.AddConstraint(
            model_name="account",
            constraint=models.UniqueConstraint(fields=("company", "code"), name="uq_company_account_code"),
        ),
        migrations.AddConstraint(
            model_name="journalentry",
            constraint=models.UniqueConstraint(fields=("company", "reference_type", "reference_id"), name="uq_je_company_reference"),
        ),
        migrations.AddConstraint(
            model_name="journalline",
            constraint=models.CheckConstraint(condition=models.Q(("debit__gte", 0), ("credit__gte", 0)), name="jl_non_negative_amounts"),
        ),
        migrations.AddConstraint(
            model_name="journalline",
            constraint=models.CheckConstraint(condition=models.Q(models.Q(("debit", 0), ("credit__gt", 0)), models.Q(("credit", 0), ("debit__gt", 0)), _connector="OR"), name="jl_debit_xor_credit"),
        ),
        migrations.AddConstraint(
            model_name="invoice",
            constraint=models.UniqueConstraint(fields=("company", "invoice_number"), name="uq_invoice_company_number"),
        ),
        migrations.AddConstraint(
            model_name="invoice",
            constraint=models.CheckConstraint(condition=models.Q(("amount_paid__gte", 0), ("amount_paid__lte", models.F("total_amount"))), name="inv_amount_paid_within_total"),
        ),
        migrations.AddConstraint(
            model_name="invoice",
            constraint=models.CheckConstraint(condition=models.Q(("subtotal__gte", 0), ("tax_amount__gte", 0)), name="inv_non_negative_amounts"),
        ),
        migrations.AddConstraint(
            model_name="invoiceline",
            constraint=models.CheckConstraint(condition=models.Q(("quantity__gte", 0), ("rate__gte", 0), ("amount__gte", 0)), name="invl_non_negative_amounts"),
        ),
        migrations.AddConstraint(
            model_name="bill",
            constraint=models.UniqueConstraint(fields=("company", "bill_number"), name="uq_bill_company_number"),
        ),
        migrations.AddConstraint(
            model_name="bill",
            constraint=models.UniqueConstraint(condition=models.Q(("vendor_bill_number__isnull", False)), fields=("company", "vendor_id", "vendor_bill_number"), name="uq_bill_vendor_number"),
        ),
        migrations.AddConstraint(
            model_name="bill",
            constraint=models.CheckConstraint(condition=models.Q(("amount_paid__gte", 0), ("amount_paid__lte", models.F("total_amount"))), name="bill_amount_paid_within_total"),
        ),
        migrations.AddConstraint(
            model_name="bill",
            constraint=models.CheckConstraint(condition=models.Q(("subtotal__gte", 0), ("tax_amount__gte", 0)), name="bill_non_negative_amounts"),
        ),
        migrations.AddConstraint(
            model_name="billline",
            constraint=models.CheckConstraint(condition=models.Q(("quantity__gte", 0), ("rate__gte", 0), ("amount__gte", 0)), name="billl_non_negative_amounts"),
        ),
        migrations.AddConstraint(
            model_name="bankaccount",
            constraint=models.UniqueConstraint(fields=("company", "name"), name="uq_company_bankaccount_name"),
        ),
        migrations.AddConstraint(
            model_name="banktransaction",
            constraint=models.UniqueConstraint(fields=("company", "external_id"), name="uq_bt_company_external_id"),
        ),
        migrations.AddConstraint(
            model_name="banktransactionmatch",
            constraint=models.CheckConstraint(condition=models.Q(("confidence__gte", 0), ("confidence__lte", 1)), name="btm_confidence_0_1"),
        ),
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.UniqueConstraint(fields=("company", "payment_number"), name="uq_payment_company_number"),
        ),
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="pay_amount_positive"),
        ),
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.CheckConstraint(condition=models.Q(("invoice__isnull", True), ("bill__isnull", True), _connector="OR"), name="pay_single_target"),
        ),
        migrations.AddConstraint(
            model_name="recurringtransaction",
            constraint=models.CheckConstraint(condition=models.Q(("anchor_day__gte", 1), ("anchor_day__lte", 31)), name="rt_anchor_day_1_31"),
        ),
        migrations.AddConstraint(
            model_name="recurringrun",
            constraint=models.UniqueConstraint(fields=("template", "scheduled_date"), name="uq_recurring_run_date"),
        ),
        migrations.AddConstraint(
            model_name="documentsequence",
            constraint=models.UniqueConstraint(fields=("company", "kind"), name="uq_sequence_company_kind"),
        ),
    ]
