from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ReviewTemplate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('department', models.CharField(choices=[('BOH', 'Back of House'), ('FOH', 'Front of House')], max_length=10)),
                ('shift_type', models.CharField(choices=[('opening', 'Opening'), ('closing', 'Closing'), ('transition', 'Transition'), ('prep', 'Prep')], max_length=20)),
                ('trigger_condition', models.CharField(choices=[('required_before_workflow', 'Required before workflow'), ('manual_access', 'Manual access'), ('manual_access_clock_in', 'Manual access at clock-in')], default='manual_access', max_length=40)),
                ('time_limit_hours', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('pass_threshold', models.FloatField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('restaurant', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='review_templates', to='accounts.restaurant')),
            ],
            options={
                'db_table': 'review_templates',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='ReviewCategory',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('max_rating', models.PositiveSmallIntegerField(blank=True, default=5, null=True)),
                ('order_index', models.PositiveIntegerField(default=0)),
                ('required', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='categories', to='reviews.reviewtemplate')),
            ],
            options={
                'db_table': 'review_categories',
                'ordering': ['template', 'order_index'],
                'verbose_name_plural': 'review categories',
            },
        ),
        migrations.CreateModel(
            name='ReviewInstance',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('date', models.DateField()),
                ('shift_type', models.CharField(choices=[('opening', 'Opening'), ('closing', 'Closing'), ('transition', 'Transition'), ('prep', 'Prep')], max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed')], default='pending', max_length=20)),
                ('completion_method', models.CharField(choices=[('manual', 'Manual'), ('workflow', 'Workflow')], default='manual', max_length=20)),
                ('locked_at', models.DateTimeField(blank=True, null=True)),
                ('total_score', models.PositiveIntegerField(default=0)),
                ('max_possible_score', models.PositiveIntegerField(default=0)),
                ('percentage', models.FloatField(default=0)),
                ('has_low_rating', models.BooleanField(default=False)),
                ('requires_manager_followup', models.BooleanField(default=False)),
                ('manager_reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('employee', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='review_instances', to=settings.AUTH_USER_MODEL)),
                ('manager_reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='acknowledged_reviews', to=settings.AUTH_USER_MODEL)),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='instances', to='reviews.reviewtemplate')),
            ],
            options={
                'db_table': 'review_instances',
                'ordering': ['-date', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ReviewResponse',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('rating', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('photos', models.JSONField(blank=True, default=list)),
                ('completed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('category', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='responses', to='reviews.reviewcategory')),
                ('completed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='completed_review_responses', to=settings.AUTH_USER_MODEL)),
                ('instance', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='responses', to='reviews.reviewinstance')),
            ],
            options={
                'db_table': 'review_responses',
                'ordering': ['category__order_index'],
            },
        ),
        migrations.CreateModel(
            name='ReviewUpdateRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('update_type', models.CharField(choices=[('response_updated', 'Response updated')], default='response_updated', max_length=30)),
                ('previous_value', models.JSONField(default=dict)),
                ('new_value', models.JSONField(default=dict)),
                ('manager_override', models.BooleanField(default=False)),
                ('reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('response', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='updates', to='reviews.reviewresponse')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='review_updates', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'review_update_records',
                'ordering': ['created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='reviewtemplate',
            constraint=models.UniqueConstraint(fields=('restaurant', 'name'), name='unique_review_template_name'),
        ),
        migrations.AddIndex(
            model_name='reviewtemplate',
            index=models.Index(fields=['department', 'shift_type'], name='review_tpl_dept_shift_idx'),
        ),
        migrations.AddConstraint(
            model_name='reviewinstance',
            constraint=models.UniqueConstraint(fields=('template', 'employee', 'date', 'shift_type'), name='unique_review_instance_per_shift'),
        ),
        migrations.AddIndex(
            model_name='reviewinstance',
            index=models.Index(fields=['employee', 'date'], name='review_inst_employee_date_idx'),
        ),
        migrations.AddIndex(
            model_name='reviewinstance',
            index=models.Index(fields=['requires_manager_followup', 'manager_reviewed_at'], name='review_inst_followup_idx'),
        ),
        migrations.AddConstraint(
            model_name='reviewresponse',
            constraint=models.UniqueConstraint(fields=('instance', 'category'), name='unique_review_response_per_category'),
        ),
    ]
