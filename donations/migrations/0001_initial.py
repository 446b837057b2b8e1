import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('campaigns', '0001_initial'),
        ('payments', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Donation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('gateway_payment_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('gateway_signature', models.CharField(blank=True, max_length=255)),
                ('amount', models.DecimalField(decimal_places=2, help_text='Donation amount excluding the platform tip', max_digits=12)),
                ('tip_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('kind', models.CharField(choices=[('direct', 'Direct'), ('product_based', 'Product Based')], max_length=20)),
                ('entry_type', models.CharField(choices=[('gateway', 'Payment Gateway'), ('manual', 'Manual Entry')], default='gateway', max_length=20)),
                ('is_anonymous', models.BooleanField(default=False, help_text='Hide donor name on public listings')),
                ('dedication', models.CharField(blank=True, max_length=255)),
                ('message', models.TextField(blank=True)),
                ('contact_name', models.CharField(blank=True, max_length=200)),
                ('contact_phone', models.CharField(blank=True, max_length=12)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('campaign', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='donations', to='campaigns.campaign')),
                ('intent', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='donation', to='payments.contributionintent')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='donations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Donation',
                'verbose_name_plural': 'Donations',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['campaign', '-created_at'], name='donation_campaign_created_idx'),
                    models.Index(fields=['user', '-created_at'], name='donation_user_created_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('amount__gte', 0)), name='donation_amount_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FulfillmentItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('quantity', models.PositiveIntegerField()),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('total_price', models.DecimalField(decimal_places=2, max_digits=14)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('allocated', 'Allocated'), ('prepared', 'Prepared'), ('distributed', 'Distributed')], db_index=True, default='pending', max_length=20)),
                ('campaign_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fulfillment_items', to='campaigns.campaignproduct')),
                ('donation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='donations.donation')),
            ],
            options={
                'verbose_name': 'Fulfillment Item',
                'verbose_name_plural': 'Fulfillment Items',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['campaign_product', 'status', 'created_at'], name='item_product_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity__gt', 0)), name='fulfillment_quantity_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Personalization',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('donor_name', models.CharField(blank=True, max_length=200)),
                ('donor_country', models.CharField(blank=True, max_length=100)),
                ('custom_image', models.URLField(blank=True, help_text='Uploaded image reference', max_length=500)),
                ('is_image_available', models.BooleanField(default=False)),
                ('custom_message', models.TextField(blank=True)),
                ('donation_purpose', models.CharField(blank=True, max_length=255)),
                ('special_instructions', models.TextField(blank=True)),
                ('insta_id', models.CharField(blank=True, max_length=100)),
                ('video_wishes', models.URLField(blank=True, max_length=500)),
                ('donation', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='personalization', to='donations.donation')),
                ('fulfillment_item', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='personalization', to='donations.fulfillmentitem')),
            ],
            options={
                'verbose_name': 'Personalization',
                'verbose_name_plural': 'Personalizations',
                'constraints': [
                    models.CheckConstraint(
                        condition=(
                            models.Q(('donation__isnull', False), ('fulfillment_item__isnull', True))
                            | models.Q(('donation__isnull', True), ('fulfillment_item__isnull', False))
                        ),
                        name='personalization_single_owner',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReceiptDelivery',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('channel', models.CharField(choices=[('email', 'Email'), ('sms', 'SMS')], max_length=10)),
                ('recipient', models.CharField(blank=True, max_length=255)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('failed', 'Failed'), ('abandoned', 'Abandoned')], db_index=True, default='pending', max_length=20)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('last_error', models.TextField(blank=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('donation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='receipt_deliveries', to='donations.donation')),
            ],
            options={
                'verbose_name': 'Receipt Delivery',
                'verbose_name_plural': 'Receipt Deliveries',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('donation', 'channel'), name='unique_receipt_per_channel'),
                ],
            },
        ),
    ]
