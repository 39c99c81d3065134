import tempfile

from decouple import config

# Directory where rendered ticket PDFs are spooled while the email is sent.
TICKET_SPOOL_DIR = config("TICKET_SPOOL_DIR", default=tempfile.gettempdir())
TICKET_EMAIL_SUBJECT = config("TICKET_EMAIL_SUBJECT", default="Your Ticket")
TICKET_ATTACHMENT_FILENAME = "Tickets.pdf"
# Upper bound on physical tickets in a single order, keeps PDF rendering bounded.
MAX_TICKETS_PER_ORDER = config("MAX_TICKETS_PER_ORDER", cast=int, default=50)
