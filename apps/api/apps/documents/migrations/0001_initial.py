# Initial migration for documents app: report documents attached to appointments

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('clinical', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ReportDocument',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('storage_bucket', models.CharField(blank=True, max_length=64, null=True)),
                ('object_key', models.CharField(blank=True, help_text='MinIO object key (path) within the reports bucket', max_length=512, null=True)),
                ('original_filename', models.CharField(blank=True, max_length=255, null=True)),
                ('content_type', models.CharField(blank=True, max_length=128, null=True)),
                ('size_bytes', models.BigIntegerField(blank=True, null=True)),
                ('sha256', models.CharField(blank=True, help_text='SHA-256 hash for integrity verification', max_length=64, null=True)),
                ('note', models.TextField(blank=True, null=True)),
                ('uploaded_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('archived_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_note', models.TextField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('appointment', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='reports',
                    to='clinical.appointment'
                )),
                ('uploaded_by_user', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='uploaded_reports',
                    to=settings.AUTH_USER_MODEL
                )),
                ('deleted_by_user', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='deleted_reports',
                    to=settings.AUTH_USER_MODEL
                )),
            ],
            options={
                'verbose_name': 'Report Document',
                'verbose_name_plural': 'Report Documents',
                'db_table': 'report_document',
                'ordering': ['-uploaded_at'],
                'indexes': [
                    models.Index(fields=['appointment', 'deleted_at'], name='idx_report_appt_active'),
                    models.Index(fields=['uploaded_at'], name='idx_report_uploaded_at'),
                    models.Index(fields=['archived_at'], name='idx_report_archived_at'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('deleted_at__isnull', True), ('deleted_note__isnull', True)),
                            models.Q(('deleted_at__isnull', False), ('deleted_note__isnull', False)),
                            _connector='OR'
                        ),
                        name='chk_report_deleted_fields_together'
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ('object_key__isnull', False),
                            models.Q(('note__isnull', False), models.Q(('note', ''), _negated=True)),
                            _connector='OR'
                        ),
                        name='chk_report_file_or_note'
                    ),
                ],
            },
        ),
    ]
