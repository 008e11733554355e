import django.dispatch

# Mailer signals
message_before_send = django.dispatch.Signal()  # sender=Mailer, message
message_sent = django.dispatch.Signal()         # sender=Mailer, message, is_successful
