"""
Initial billing schema.

Changes:
    - Create WebhookEvent (event ledger, unique stripe_event_id, retry bookkeeping)
    - Create VerificationAttempt (append-only signature audit log)
    - Create SecurityEvent (append-only security log)
    - Create StripeCustomer, PaymentMethod, PaymentIntent, Invoice mirrors
"""

import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models

import billing.models.webhook_event


def _uuid_pk():
    return models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
        primary_key=True,
        serialize=False,
    )


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _organization_fk(related_name, help_text=None):
    kwargs = {"help_text": help_text} if help_text else {}
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to="organizations.organization",
        **kwargs,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("organizations", "0001_initial"),
    ]

    operations = [
        # =====================================================================
        # Event ledger
        # =====================================================================
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *_timestamps(),
                ("id", _uuid_pk()),
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'invoice.paid')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload from Stripe (JSON)"),
                ),
                (
                    "api_version",
                    models.CharField(
                        blank=True,
                        help_text="Stripe API version used to render the event",
                        max_length=50,
                        null=True,
                    ),
                ),
                (
                    "livemode",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the event originated in live mode",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("received", "Received"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="received",
                        help_text="Current processing status (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "processing_note",
                    models.CharField(
                        blank=True,
                        help_text="Informational note recorded on success",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of failed processing attempts",
                    ),
                ),
                (
                    "max_retries",
                    models.PositiveSmallIntegerField(
                        default=billing.models.webhook_event.default_max_retries,
                        help_text="Failed attempts allowed before the event is terminal",
                    ),
                ),
                (
                    "next_retry_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="When the next automatic retry is due",
                        null=True,
                    ),
                ),
                (
                    "organization",
                    _organization_fk(
                        "webhook_events",
                        "Organization the event belongs to, if resolvable",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "db_table": "billing_webhook_events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "next_retry_at"],
                        name="webhook_status_retry_idx",
                    ),
                    models.Index(
                        fields=["event_type", "created_at"],
                        name="webhook_type_created_idx",
                    ),
                    models.Index(
                        fields=["organization", "status"],
                        name="webhook_org_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("retry_count__lte", models.F("max_retries"))
                        ),
                        name="webhook_retry_count_within_max",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Audit logs
        # =====================================================================
        migrations.CreateModel(
            name="VerificationAttempt",
            fields=[
                ("id", _uuid_pk()),
                (
                    "stripe_event_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe Event ID, when the payload could be parsed",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(blank=True, max_length=100, null=True),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("success", "Success"), ("failed", "Failed")],
                        db_index=True,
                        max_length=10,
                    ),
                ),
                (
                    "failure_reason",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True, default="")),
                (
                    "payload_size",
                    models.PositiveIntegerField(
                        default=0, help_text="Raw request body size in bytes"
                    ),
                ),
                (
                    "processing_time_ms",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Time spent on verification in milliseconds",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                "verbose_name": "Verification Attempt",
                "verbose_name_plural": "Verification Attempts",
                "db_table": "billing_verification_attempts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="SecurityEvent",
            fields=[
                ("id", _uuid_pk()),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            (
                                "webhook_verification_failed",
                                "Webhook Verification Failed",
                            ),
                            (
                                "webhook_verification_discrepancy",
                                "Webhook Verification Discrepancy",
                            ),
                        ],
                        db_index=True,
                        max_length=50,
                    ),
                ),
                (
                    "severity",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("critical", "Critical"),
                        ],
                        default="high",
                        max_length=10,
                    ),
                ),
                ("description", models.TextField()),
                ("details", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True, default="")),
                (
                    "action_taken",
                    models.CharField(
                        help_text="What the system did in response (e.g. 'blocked')",
                        max_length=50,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                "verbose_name": "Security Event",
                "verbose_name_plural": "Security Events",
                "db_table": "billing_security_events",
                "ordering": ["-created_at"],
            },
        ),
        # =====================================================================
        # Provider mirrors
        # =====================================================================
        migrations.CreateModel(
            name="StripeCustomer",
            fields=[
                *_timestamps(),
                ("id", _uuid_pk()),
                (
                    "stripe_customer_id",
                    models.CharField(
                        help_text="Stripe Customer ID (cus_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("address", models.JSONField(blank=True, default=dict)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("organization", _organization_fk("stripe_customers")),
            ],
            options={
                "verbose_name": "Stripe Customer",
                "verbose_name_plural": "Stripe Customers",
                "db_table": "billing_stripe_customers",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                *_timestamps(),
                ("id", _uuid_pk()),
                (
                    "stripe_payment_method_id",
                    models.CharField(
                        help_text="Stripe PaymentMethod ID (pm_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "stripe_customer_id",
                    models.CharField(
                        blank=True, db_index=True, default="", max_length=255
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        help_text="Payment method type (e.g., 'card')",
                        max_length=50,
                    ),
                ),
                ("card_brand", models.CharField(blank=True, default="", max_length=30)),
                ("card_last4", models.CharField(blank=True, default="", max_length=4)),
                (
                    "card_exp_month",
                    models.PositiveSmallIntegerField(blank=True, null=True),
                ),
                (
                    "card_exp_year",
                    models.PositiveSmallIntegerField(blank=True, null=True),
                ),
                ("organization", _organization_fk("payment_methods")),
            ],
            options={
                "verbose_name": "Payment Method",
                "verbose_name_plural": "Payment Methods",
                "db_table": "billing_payment_methods",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentIntent",
            fields=[
                *_timestamps(),
                ("id", _uuid_pk()),
                (
                    "stripe_payment_intent_id",
                    models.CharField(
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "stripe_customer_id",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("amount_cents", models.PositiveBigIntegerField(default=0)),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("requires_payment_method", "Requires Payment Method"),
                            ("requires_confirmation", "Requires Confirmation"),
                            ("requires_action", "Requires Action"),
                            ("processing", "Processing"),
                            ("requires_capture", "Requires Capture"),
                            ("canceled", "Canceled"),
                            ("succeeded", "Succeeded"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                ("failure_code", models.CharField(blank=True, default="", max_length=100)),
                ("failure_message", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("organization", _organization_fk("payment_intents")),
            ],
            options={
                "verbose_name": "Payment Intent",
                "verbose_name_plural": "Payment Intents",
                "db_table": "billing_payment_intents",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                *_timestamps(),
                ("id", _uuid_pk()),
                (
                    "stripe_invoice_id",
                    models.CharField(
                        help_text="Stripe Invoice ID (in_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "stripe_customer_id",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "stripe_subscription_id",
                    models.CharField(
                        blank=True, db_index=True, default="", max_length=255
                    ),
                ),
                ("number", models.CharField(blank=True, default="", max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("open", "Open"),
                            ("paid", "Paid"),
                            ("uncollectible", "Uncollectible"),
                            ("void", "Void"),
                        ],
                        db_index=True,
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("amount_due_cents", models.PositiveBigIntegerField(default=0)),
                ("amount_paid_cents", models.PositiveBigIntegerField(default=0)),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "hosted_invoice_url",
                    models.URLField(blank=True, default="", max_length=500),
                ),
                ("invoice_pdf", models.URLField(blank=True, default="", max_length=500)),
                ("period_start", models.DateTimeField(blank=True, null=True)),
                ("period_end", models.DateTimeField(blank=True, null=True)),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("attempt_count", models.PositiveSmallIntegerField(default=0)),
                ("organization", _organization_fk("invoices")),
            ],
            options={
                "verbose_name": "Invoice",
                "verbose_name_plural": "Invoices",
                "db_table": "billing_invoices",
                "ordering": ["-created_at"],
            },
        ),
    ]
