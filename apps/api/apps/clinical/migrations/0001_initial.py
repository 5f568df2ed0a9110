# Initial migration for clinical app: appointments and clinical audit log

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('authz', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('scheduled_at', models.DateTimeField()),
                ('status', models.CharField(
                    choices=[
                        ('requested', 'Requested'),
                        ('confirmed', 'Confirmed'),
                        ('rejected', 'Rejected'),
                        ('cancelled', 'Cancelled'),
                        ('completed', 'Completed')
                    ],
                    default='requested',
                    max_length=20
                )),
                ('note', models.TextField(blank=True, null=True)),
                ('rejection_note', models.TextField(blank=True, null=True)),
                ('price_cents', models.PositiveIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='appointments',
                    to=settings.AUTH_USER_MODEL
                )),
                ('doctor', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='appointments',
                    to='authz.doctor'
                )),
                ('specialty', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='appointments',
                    to='authz.specialty'
                )),
                ('created_by_user', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='created_appointments',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Appointment',
                'verbose_name_plural': 'Appointments',
                'db_table': 'appointment',
                'indexes': [
                    models.Index(fields=['patient'], name='idx_appointment_patient'),
                    models.Index(fields=['doctor', 'scheduled_at'], name='idx_appointment_doctor_slot'),
                    models.Index(fields=['scheduled_at'], name='idx_appointment_scheduled'),
                    models.Index(fields=['status'], name='idx_appointment_status'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'cancelled'), _negated=True),
                        fields=('doctor', 'scheduled_at'),
                        name='uniq_appointment_doctor_slot_active'
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='ClinicalAuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('action', models.CharField(
                    choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete')],
                    max_length=10
                )),
                ('entity_type', models.CharField(
                    choices=[('Appointment', 'Appointment'), ('ReportDocument', 'Report Document')],
                    max_length=50
                )),
                ('entity_id', models.UUIDField(help_text='UUID of the entity that was changed')),
                ('metadata', models.JSONField(default=dict, help_text='Command name, before/after snapshots, request metadata')),
                ('actor_user', models.ForeignKey(
                    blank=True,
                    help_text='User who performed the action (null for system actions)',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='clinical_audit_logs',
                    to=settings.AUTH_USER_MODEL
                )),
                ('appointment', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='audit_logs',
                    to='clinical.appointment'
                )),
            ],
            options={
                'verbose_name': 'Clinical Audit Log',
                'verbose_name_plural': 'Clinical Audit Logs',
                'db_table': 'clinical_audit_log',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['created_at'], name='idx_audit_created_at'),
                    models.Index(fields=['actor_user'], name='idx_audit_actor'),
                    models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
                    models.Index(fields=['action'], name='idx_audit_action'),
                ],
            },
        ),
    ]
