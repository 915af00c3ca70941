"""Message catalog for user-facing strings (errors, labels, email copy).

Italian is the shop's working language and the default; English is provided
for staff clients that send `Accept-Language: en`.
"""
from __future__ import annotations
from typing import Any, Dict, Optional
from flask import current_app, request
from werkzeug.datastructures import LanguageAccept
from werkzeug.http import parse_accept_header

DEFAULT_LOCALE = 'it'

CATALOG: Dict[str, Dict[str, str]] = {
    'it': {
        'errors.generic': 'Si è verificato un errore imprevisto',
        'errors.not_found': 'Risorsa non trovata',
        'errors.validation': 'Dati non validi',
        'errors.auth_required': 'Autenticazione richiesta. Aggiorna la pagina e riprova.',
        'errors.forbidden': 'Permesso mancante: {permission}',
        'errors.invalid_sort': 'Campo di ordinamento non valido: {value}',
        'errors.store': 'Errore del database',
        'errors.gateway': 'Servizio esterno non disponibile',
        'errors.required_field': 'Il campo {field} è obbligatorio',
        'errors.invalid_status': 'Stato non valido: {value}',
        'errors.invalid_priority': 'Priorità non valida: {value}',
        'errors.invalid_field': 'Valore non valido per {field}',
        'errors.file_type': 'Solo immagini (JPG, PNG, GIF, WebP) e video (MP4, MOV, WebM) sono supportati.',
        'errors.file_size': 'I file devono essere inferiori a 10MB.',
        'errors.unknown_setting': 'Impostazione sconosciuta: {key}',
        'errors.invalid_setting': 'Valore non valido per l\'impostazione {key}',
        'errors.ticket_not_found': 'Ticket non trovato',
        'errors.ticket_create': 'Impossibile creare il ticket',
        'errors.ticket_update': 'Impossibile aggiornare il ticket',
        'errors.ticket_delete': 'Impossibile eliminare il ticket',
        'errors.ticket_number': 'Impossibile assegnare un numero al ticket',
        'errors.setting_get': 'Impossibile leggere l\'impostazione {key}',
        'errors.setting_save': 'Impossibile salvare l\'impostazione {key}',
        'errors.invalid_credentials': 'Email o password non validi',
        'status.intake': 'Ticket inserito',
        'status.assignment': 'In assegnazione al tecnico',
        'status.in-progress': 'In lavorazione',
        'status.parts-ordered': 'Parti ordinate',
        'status.ready-for-pickup': 'Pronto per il ritiro',
        'status.closed': 'Chiuso',
        'status.quote-sent': 'Preventivo inviato',
        'status.quote-accepted': 'Preventivo accettato',
        'status.rejected': 'Rifiutato',
        'priority.low': 'Bassa',
        'priority.medium': 'Media',
        'priority.high': 'Alta',
        'email.new_ticket.subject': 'Nuovo Ticket di Riparazione: {number}',
        'email.new_ticket.heading': 'Nuovo Ticket di Riparazione Creato',
        'email.status_change.subject': 'Stato Ticket Aggiornato: {number}',
        'email.status_change.heading': 'Stato Ticket di Riparazione Aggiornato',
        'email.status_change.changed': 'Stato Cambiato',
        'email.customer_status.subject': 'Lo stato del tuo ticket di riparazione è stato aggiornato: {number}',
        'email.customer_status.heading': 'Lo Stato del Tuo Ticket di Riparazione è Stato Aggiornato',
        'email.customer_status.greeting': 'Gentile {name},',
        'email.customer_status.intro': 'Lo stato del tuo ticket di riparazione è stato aggiornato:',
        'email.customer_status.new_status': 'Nuovo Stato',
        'email.customer_status.link': 'Puoi visualizzare i dettagli del tuo ticket',
        'email.customer_status.thanks': 'Grazie per aver scelto il nostro servizio.',
        'email.old_tickets.subject': '{count} Ticket in Attesa da Più di {days} Giorni',
        'email.old_tickets.heading': 'Ticket in Attesa da Più di {days} Giorni',
        'email.old_tickets.intro': 'I seguenti ticket sono aperti da più di {days} giorni:',
        'email.old_tickets.created': 'Data Creazione',
        'email.old_tickets.action': 'Azione',
        'email.old_tickets.view': 'Visualizza',
        'email.test.subject': 'Email di prova',
        'email.test.body': 'Le notifiche email sono configurate correttamente.',
        'email.view_ticket': 'Visualizza i dettagli del ticket',
        'field.ticket_number': 'Numero Ticket',
        'field.customer_name': 'Cliente',
        'field.customer_email': 'Email',
        'field.customer_phone': 'Numero di Telefono',
        'field.device_type': 'Dispositivo',
        'field.description': 'Descrizione',
        'field.status': 'Stato',
        'field.priority': 'Priorità',
        'field.price': 'Prezzo',
        'field.password': 'Password Dispositivo',
        'field.purchase_date': 'Data di Acquisto',
        'field.order_id': 'ID Ordine',
        'field.created_at': 'Creato il',
        'field.updated_at': 'Ultimo aggiornamento',
        'field.assigned_to': 'Assegnato a',
        'print.title': 'Ticket di Riparazione',
        'print.customer_info': 'Informazioni Cliente',
        'print.device_info': 'Informazioni Dispositivo',
        'print.terms': 'Termini e Condizioni',
        'print.signature': 'Firma Cliente',
        'print.date': 'Data',
        'print.unassigned': 'Non assegnato',
    },
    'en': {
        'errors.generic': 'Unexpected error',
        'errors.not_found': 'Resource not found',
        'errors.validation': 'Invalid data',
        'errors.auth_required': 'Authentication failed. Please refresh the page and try again.',
        'errors.forbidden': 'Missing permission: {permission}',
        'errors.invalid_sort': 'Invalid sort field: {value}',
        'errors.store': 'Database error',
        'errors.gateway': 'External service unavailable',
        'errors.required_field': '{field} is required',
        'errors.invalid_status': 'Invalid status: {value}',
        'errors.invalid_priority': 'Invalid priority: {value}',
        'errors.invalid_field': 'Invalid value for {field}',
        'errors.file_type': 'Only images (JPG, PNG, GIF, WebP) and videos (MP4, MOV, WebM) are supported.',
        'errors.file_size': 'Files must be smaller than 10MB.',
        'errors.unknown_setting': 'Unknown setting: {key}',
        'errors.invalid_setting': 'Invalid value for setting {key}',
        'errors.ticket_not_found': 'Ticket not found',
        'errors.ticket_create': 'Unable to create the ticket',
        'errors.ticket_update': 'Unable to update the ticket',
        'errors.ticket_delete': 'Unable to delete the ticket',
        'errors.ticket_number': 'Unable to assign a ticket number',
        'errors.setting_get': 'Unable to read setting {key}',
        'errors.setting_save': 'Unable to save setting {key}',
        'errors.invalid_credentials': 'Invalid email or password',
        'status.intake': 'Ticket received',
        'status.assignment': 'Awaiting technician',
        'status.in-progress': 'In progress',
        'status.parts-ordered': 'Parts ordered',
        'status.ready-for-pickup': 'Ready for pickup',
        'status.closed': 'Closed',
        'status.quote-sent': 'Quote sent',
        'status.quote-accepted': 'Quote accepted',
        'status.rejected': 'Rejected',
        'priority.low': 'Low',
        'priority.medium': 'Medium',
        'priority.high': 'High',
        'email.new_ticket.subject': 'New Repair Ticket: {number}',
        'email.new_ticket.heading': 'New Repair Ticket Created',
        'email.status_change.subject': 'Ticket Status Updated: {number}',
        'email.status_change.heading': 'Repair Ticket Status Updated',
        'email.status_change.changed': 'Status Changed',
        'email.customer_status.subject': 'Your repair ticket status has been updated: {number}',
        'email.customer_status.heading': 'Your Repair Ticket Status Has Been Updated',
        'email.customer_status.greeting': 'Dear {name},',
        'email.customer_status.intro': 'The status of your repair ticket has been updated:',
        'email.customer_status.new_status': 'New Status',
        'email.customer_status.link': 'You can view your ticket details',
        'email.customer_status.thanks': 'Thank you for choosing our service.',
        'email.old_tickets.subject': '{count} Tickets Waiting More Than {days} Days',
        'email.old_tickets.heading': 'Tickets Waiting More Than {days} Days',
        'email.old_tickets.intro': 'The following tickets have been open for more than {days} days:',
        'email.old_tickets.created': 'Created',
        'email.old_tickets.action': 'Action',
        'email.old_tickets.view': 'View',
        'email.test.subject': 'Test email',
        'email.test.body': 'Email notifications are configured correctly.',
        'email.view_ticket': 'View ticket details',
        'field.ticket_number': 'Ticket Number',
        'field.customer_name': 'Customer',
        'field.customer_email': 'Email',
        'field.customer_phone': 'Phone Number',
        'field.device_type': 'Device',
        'field.description': 'Description',
        'field.status': 'Status',
        'field.priority': 'Priority',
        'field.price': 'Price',
        'field.password': 'Device Password',
        'field.purchase_date': 'Purchase Date',
        'field.order_id': 'Order ID',
        'field.created_at': 'Created',
        'field.updated_at': 'Last updated',
        'field.assigned_to': 'Assigned to',
        'print.title': 'Repair Ticket',
        'print.customer_info': 'Customer Information',
        'print.device_info': 'Device Information',
        'print.terms': 'Terms and Conditions',
        'print.signature': 'Customer Signature',
        'print.date': 'Date',
        'print.unassigned': 'Unassigned',
    },
}

SUPPORTED_LOCALES = tuple(CATALOG.keys())


def translate(message_key: str, locale: Optional[str] = None, **params: Any) -> str:
    """Look up `message_key` for `locale`, falling back to the default locale and then the key itself."""
    messages = CATALOG.get(locale or DEFAULT_LOCALE) or CATALOG[DEFAULT_LOCALE]
    template = messages.get(message_key) or CATALOG[DEFAULT_LOCALE].get(message_key) or message_key
    if not params:
        return template
    try:
        return template.format(**params)
    except (KeyError, IndexError):
        return template


def resolve_locale(accept_language: Optional[str], default: Optional[str] = None) -> str:
    fallback = default if default in CATALOG else DEFAULT_LOCALE
    if not accept_language:
        return fallback
    accept = parse_accept_header(accept_language, LanguageAccept)
    return accept.best_match(SUPPORTED_LOCALES, default=fallback)


def request_locale() -> str:
    """Locale for the current request: Accept-Language, else the app default."""
    return resolve_locale(request.headers.get('Accept-Language'), current_app.config.get('DEFAULT_LOCALE'))


def status_label(status: str, locale: Optional[str] = None) -> str:
    return translate(f'status.{status}', locale)

__all__ = ['translate', 'resolve_locale', 'request_locale', 'status_label', 'SUPPORTED_LOCALES', 'DEFAULT_LOCALE']
