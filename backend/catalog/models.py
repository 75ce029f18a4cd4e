from django.db import models


class ServiceCategory(models.Model):
    """Top level service line (e.g. Water Tanker, Sand Transport)."""

    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=100, unique=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'service_categories'
        ordering = ['name']
        verbose_name_plural = 'service categories'

    def __str__(self):
        return self.name


class SubService(models.Model):
    """Specialization inside a category (tanker size, delivery type...)."""

    category = models.ForeignKey(
        ServiceCategory,
        on_delete=models.CASCADE,
        related_name='sub_services'
    )
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100)

    class Meta:
        db_table = 'sub_services'
        ordering = ['category', 'name']
        constraints = [
            models.UniqueConstraint(
                fields=['category', 'slug'],
                name='unique_sub_service_per_category'
            )
        ]

    def __str__(self):
        return f"{self.category.name} / {self.name}"


class Service(models.Model):
    """Bookable service a customer orders; always belongs to one category."""

    category = models.ForeignKey(
        ServiceCategory,
        on_delete=models.PROTECT,
        related_name='services'
    )
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'services'
        ordering = ['name']

    def __str__(self):
        return self.name
