"""Reception desk attendance tracking.

Front-desk staff register visitor attendances, the responsible sector is
notified over WhatsApp, and each attendance is tracked until it is resolved.
"""
