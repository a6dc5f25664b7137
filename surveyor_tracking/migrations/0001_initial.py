import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Surveyor',
            fields=[
                ('id', models.CharField(help_text='Surveyor identifier (e.g. SUR009)', max_length=64, primary_key=True, serialize=False)),
                ('name', models.CharField(blank=True, default='', help_text='Display name', max_length=200)),
                ('city', models.CharField(blank=True, db_index=True, default='', help_text='City the surveyor works in', max_length=100)),
                ('project_name', models.CharField(blank=True, db_index=True, default='', help_text='Project the surveyor is assigned to', max_length=100)),
                ('username', models.CharField(blank=True, help_text='Login name for the mobile app', max_length=150, null=True, unique=True)),
                ('password', models.CharField(blank=True, default='', help_text='Hashed password', max_length=128)),
                ('last_activity', models.DateTimeField(blank=True, help_text='Last login or location upload', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='When this surveyor was registered')),
            ],
            options={
                'verbose_name': 'Surveyor',
                'verbose_name_plural': 'Surveyors',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='SystemConfiguration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('data', models.JSONField(blank=True, default=dict, help_text='Overrides merged over the built-in defaults')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='When the configuration was last changed')),
            ],
            options={
                'verbose_name': 'System Configuration',
                'verbose_name_plural': 'System Configuration',
            },
        ),
        migrations.CreateModel(
            name='LocationTrack',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('latitude', models.FloatField(help_text='Latitude in decimal degrees (-90 to +90)')),
                ('longitude', models.FloatField(help_text='Longitude in decimal degrees (-180 to +180)')),
                ('timestamp', models.DateTimeField(db_index=True, help_text='When the device captured the position (UTC)')),
                ('received_at', models.DateTimeField(auto_now_add=True, help_text='When the server received this location')),
                ('surveyor', models.ForeignKey(help_text='The surveyor that reported this location', on_delete=django.db.models.deletion.CASCADE, related_name='tracks', to='surveyor_tracking.surveyor')),
            ],
            options={
                'verbose_name': 'Location Track',
                'verbose_name_plural': 'Location Tracks',
                'ordering': ['timestamp'],
                'indexes': [models.Index(fields=['surveyor', 'timestamp'], name='track_surveyor_ts_idx')],
            },
        ),
    ]
