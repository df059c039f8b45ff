"""Sale status tracking shared by the commission and goal receivers."""
from django.db.models.signals import pre_save
from django.dispatch import receiver


@receiver(pre_save, sender="sales.Sale")
def capture_previous_status(sender, instance, **kwargs):
    """Capture previous status to detect transitions in post_save."""
    if not getattr(instance, "pk", None) or instance._state.adding:
        instance._previous_status = None
        return
    previous = sender.objects.filter(pk=instance.pk).only("status").first()
    instance._previous_status = getattr(previous, "status", None)
