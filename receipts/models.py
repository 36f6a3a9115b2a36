from django.db import models


class Receipt(models.Model):
    """Immutable intake record; owns its line items."""

    receipt_number = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    # Snapshots written once at creation, never recomputed
    total_weight = models.FloatField()
    total_sum = models.IntegerField()

    class Meta:
        db_table = "receipts"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        label = self.receipt_number or f"#{self.pk}"
        return f"Receipt {label} - {self.total_weight_display} - {self.total_sum}"

    @property
    def total_weight_display(self):
        """Return weight formatted with two decimals and a unit."""
        return f"{self.total_weight:.2f} kg"


class ReceiptItem(models.Model):
    """One bracket's priced contribution within a receipt."""

    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name="items")
    percentage = models.IntegerField()
    weight = models.FloatField()
    coefficient = models.FloatField()
    sum = models.IntegerField()

    class Meta:
        db_table = "receipt_items"
        ordering = ["percentage", "id"]

    def __str__(self):
        return f"{self.percentage}% x {self.weight} x {self.coefficient} = {self.sum}"


class Setting(models.Model):
    """Named process-wide value stored as text."""

    COEFFICIENT = "coefficient"

    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()

    class Meta:
        db_table = "settings"

    def __str__(self):
        return f"{self.key} = {self.value}"
