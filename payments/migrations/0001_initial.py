import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('campaigns', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ContributionIntent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('amount', models.DecimalField(decimal_places=2, help_text='Total charged, including the platform tip', max_digits=12)),
                ('tip_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('currency', models.CharField(default='INR', max_length=3)),
                ('kind', models.CharField(choices=[('direct', 'Direct'), ('product_based', 'Product Based')], default='direct', max_length=20)),
                ('status', models.CharField(choices=[('created', 'Created'), ('attempted', 'Attempted'), ('paid', 'Paid'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], db_index=True, default='created', max_length=20)),
                ('gateway_order_id', models.CharField(help_text='Razorpay order id (order_XXXX) or manual_<ts>_<n> for offline entries', max_length=100, unique=True)),
                ('gateway_payment_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('gateway_response', models.JSONField(blank=True, default=dict)),
                ('failure_reason', models.TextField(blank=True, default='')),
                ('campaign', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='contribution_intents', to='campaigns.campaign')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='contribution_intents', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Contribution Intent',
                'verbose_name_plural': 'Contribution Intents',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='intent_status_created_idx'),
                    models.Index(fields=['user', '-created_at'], name='intent_user_created_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='intent_amount_positive'),
                    models.CheckConstraint(condition=models.Q(('tip_amount__gte', 0)), name='intent_tip_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CheckoutSnapshot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cart_items', models.JSONField(blank=True, default=list)),
                ('form_data', models.JSONField(blank=True, default=dict)),
                ('intent', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='snapshot', to='payments.contributionintent')),
            ],
            options={
                'verbose_name': 'Checkout Snapshot',
                'verbose_name_plural': 'Checkout Snapshots',
            },
        ),
        migrations.CreateModel(
            name='GatewayCallback',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('source', models.CharField(choices=[('callback', 'Checkout Callback'), ('webhook', 'Webhook'), ('reconcile', 'Reconciliation')], max_length=20)),
                ('event', models.CharField(blank=True, max_length=50)),
                ('gateway_order_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('gateway_payment_id', models.CharField(blank=True, max_length=100)),
                ('signature_valid', models.BooleanField(default=False)),
                ('raw_data', models.JSONField(default=dict)),
                ('outcome', models.CharField(blank=True, max_length=50)),
                ('intent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='callbacks', to='payments.contributionintent')),
            ],
            options={
                'verbose_name': 'Gateway Callback',
                'verbose_name_plural': 'Gateway Callbacks',
                'ordering': ['-created_at'],
            },
        ),
    ]
