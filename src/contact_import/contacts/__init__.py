from contact_import.contacts.models import Contact

__all__ = ["Contact"]
