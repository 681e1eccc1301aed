"""Prometheus metrics for the application"""
try:
    from prometheus_client import Counter, REGISTRY

    # Dispatch metrics
    try:
        emails_sent_counter = Counter(
            'sfgs_emails_sent_total',
            'Total number of queued emails delivered to the mail transport',
            ['email_type']
        )
    except ValueError:
        emails_sent_counter = REGISTRY._names_to_collectors.get('sfgs_emails_sent_total')

    try:
        emails_failed_counter = Counter(
            'sfgs_emails_failed_total',
            'Total number of queued emails that failed to send',
            ['email_type']
        )
    except ValueError:
        emails_failed_counter = REGISTRY._names_to_collectors.get('sfgs_emails_failed_total')

    try:
        attachment_fallbacks_counter = Counter(
            'sfgs_attachment_fallbacks_total',
            'Attachments delivered as a link or placeholder instead of a file',
            ['kind']
        )
    except ValueError:
        attachment_fallbacks_counter = REGISTRY._names_to_collectors.get('sfgs_attachment_fallbacks_total')

    # Scheduler metrics
    try:
        scheduler_runs_counter = Counter(
            'sfgs_scheduler_runs_total',
            'Total number of email queue scheduler runs',
            ['status']
        )
    except ValueError:
        scheduler_runs_counter = REGISTRY._names_to_collectors.get('sfgs_scheduler_runs_total')

    # Birthday metrics
    try:
        birthday_entries_queued_counter = Counter(
            'sfgs_birthday_entries_queued_total',
            'Total number of birthday emails added to the queue'
        )
    except ValueError:
        birthday_entries_queued_counter = REGISTRY._names_to_collectors.get('sfgs_birthday_entries_queued_total')

except ImportError:
    # Prometheus not available - create no-op metrics
    class NoOpCounter:
        def labels(self, **kwargs):
            return self
        def inc(self, value=1):
            pass

    emails_sent_counter = NoOpCounter()
    emails_failed_counter = NoOpCounter()
    attachment_fallbacks_counter = NoOpCounter()
    scheduler_runs_counter = NoOpCounter()
    birthday_entries_queued_counter = NoOpCounter()
