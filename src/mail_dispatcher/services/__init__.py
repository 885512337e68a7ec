from mail_dispatcher.services.retention import RetentionScheduler
from mail_dispatcher.services.scheduler import DispatchScheduler, SchedulerState

__all__ = ["DispatchScheduler", "RetentionScheduler", "SchedulerState"]
