import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(error_messages={'unique': 'A category with that name already exists.'}, help_text='Category name, at least 2 characters', max_length=100, unique=True, verbose_name='name')),
                ('description', models.TextField(blank=True, default='', help_text='What the category covers', verbose_name='description')),
                ('icon', models.CharField(blank=True, default='', help_text='Short icon shown next to the category name', max_length=20, verbose_name='icon')),
                ('is_active', models.BooleanField(default=True, help_text='Inactive categories are hidden from the category list', verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the category was created', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the category was last updated', verbose_name='updated at')),
            ],
            options={
                'verbose_name': 'category',
                'verbose_name_plural': 'categories',
                'ordering': ['name'],
            },
        ),
        migrations.AddField(
            model_name='equipment',
            name='category',
            field=models.ForeignKey(blank=True, help_text='Kind of equipment', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='equipment', to='core.category'),
        ),
        migrations.AddIndex(
            model_name='equipment',
            index=models.Index(fields=['category', 'availability'], name='equipment_category_idx'),
        ),
        migrations.AlterField(
            model_name='reservation',
            name='renter',
            field=models.ForeignKey(help_text='Organization renting the equipment', on_delete=django.db.models.deletion.PROTECT, related_name='reservations', to=settings.AUTH_USER_MODEL),
        ),
        migrations.AlterField(
            model_name='review',
            name='author',
            field=models.ForeignKey(help_text='Renter writing the review', on_delete=django.db.models.deletion.PROTECT, related_name='reviews_written', to=settings.AUTH_USER_MODEL),
        ),
    ]
