import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('campaigns', '0001_initial'),
        ('donations', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DistributionBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(help_text='Label printed on stickers and manifests', max_length=200)),
                ('planned_distribution_date', models.DateField()),
                ('status', models.CharField(choices=[('planning', 'Planning'), ('prepared', 'Prepared'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='planning', max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('total_items', models.PositiveIntegerField(default=0)),
                ('allocated_items', models.PositiveIntegerField(default=0)),
                ('prepared_items', models.PositiveIntegerField(default=0)),
                ('distributed_items', models.PositiveIntegerField(default=0)),
                ('total_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('progress_percentage', models.PositiveSmallIntegerField(default=0)),
                ('campaign', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='distribution_batches', to='campaigns.campaign')),
                ('campaign_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='distribution_batches', to='campaigns.campaignproduct')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_batches', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Distribution Batch',
                'verbose_name_plural': 'Distribution Batches',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['campaign_product', 'status'], name='batch_product_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BatchMembership',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('quantity_allocated', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('allocated', 'Allocated'), ('prepared', 'Prepared'), ('distributed', 'Distributed')], default='allocated', max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('released_at', models.DateTimeField(blank=True, null=True)),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='distribution.distributionbatch')),
                ('fulfillment_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='batch_memberships', to='donations.fulfillmentitem')),
            ],
            options={
                'verbose_name': 'Batch Membership',
                'verbose_name_plural': 'Batch Memberships',
                'ordering': ['batch', 'created_at', 'id'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_active', True)), fields=('fulfillment_item',), name='one_active_batch_per_item'),
                    models.CheckConstraint(condition=models.Q(('quantity_allocated__gt', 0)), name='membership_quantity_positive'),
                ],
            },
        ),
    ]
