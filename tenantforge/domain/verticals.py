from __future__ import annotations

from dataclasses import dataclass
from typing import Any


FALLBACK_VERTICAL = "services"


@dataclass(frozen=True)
class DefaultFaq:
    question: str
    answer: str
    category: str


@dataclass(frozen=True)
class VerticalDefaults:
    # Seed data only; provisioning logic never branches on the vertical beyond this table.
    vertical: str
    display_name: str
    default_services: tuple[str, ...]
    sidebar_config: tuple[dict[str, Any], ...]
    default_faqs: tuple[DefaultFaq, ...]
    timezone: str | None = None
    locale: str | None = None
    currency: str | None = None


def _nav(item_id: str, label: str, icon: str, href: str) -> dict[str, Any]:
    return {"id": item_id, "label": label, "icon": icon, "href": href}


_DASHBOARD = _nav("dashboard", "Dashboard", "LayoutDashboard", "/dashboard")
_ANALYTICS = _nav("analytics", "Analytics", "BarChart3", "/dashboard/analytics")
_SETTINGS = _nav("settings", "Configuración", "Settings", "/dashboard/settings")


VERTICAL_DEFAULTS: dict[str, VerticalDefaults] = {
    "dental": VerticalDefaults(
        vertical="dental",
        display_name="Clínica Dental",
        default_services=(
            "Limpieza Dental",
            "Consulta General",
            "Blanqueamiento",
            "Ortodoncia",
            "Implantes",
            "Endodoncia",
            "Extracción",
        ),
        sidebar_config=(
            _DASHBOARD,
            _nav("leads", "Leads", "Users", "/dashboard/leads"),
            _nav("calendario", "Calendario", "Calendar", "/dashboard/calendario"),
            _nav("patients", "Pacientes", "UserCheck", "/dashboard/patients"),
            _nav("inbox", "Inbox", "MessageSquare", "/dashboard/inbox"),
            _nav("quotes", "Cotizaciones", "FileText", "/dashboard/quotes"),
            _ANALYTICS,
            _SETTINGS,
        ),
        default_faqs=(
            DefaultFaq(
                question="¿Cuánto cuesta una limpieza dental?",
                answer=(
                    "El costo de una limpieza dental varía según el tipo de limpieza necesaria. "
                    "Te invitamos a agendar una valoración gratuita para darte un presupuesto exacto."
                ),
                category="precios",
            ),
            DefaultFaq(
                question="¿Aceptan seguros dentales?",
                answer=(
                    "Sí, trabajamos con la mayoría de los seguros dentales. "
                    "Contáctanos con los datos de tu seguro para verificar la cobertura."
                ),
                category="pagos",
            ),
            DefaultFaq(
                question="¿Cuál es el horario de atención?",
                answer=(
                    "Nuestro horario es de Lunes a Viernes de 9:00 AM a 7:00 PM "
                    "y Sábados de 9:00 AM a 2:00 PM."
                ),
                category="general",
            ),
        ),
    ),
    "restaurant": VerticalDefaults(
        vertical="restaurant",
        display_name="Restaurante",
        default_services=("Servicio en Mesa", "Para Llevar", "Delivery", "Reservaciones", "Eventos"),
        sidebar_config=(
            _DASHBOARD,
            _nav("orders", "Órdenes", "ShoppingBag", "/dashboard/orders"),
            _nav("menu", "Menú", "BookOpen", "/dashboard/menu"),
            _nav("inventory", "Inventario", "Package", "/dashboard/inventory"),
            _nav("reservations", "Reservaciones", "Calendar", "/dashboard/reservations"),
            _nav("inbox", "Mensajes", "MessageSquare", "/dashboard/inbox"),
            _ANALYTICS,
            _SETTINGS,
        ),
        default_faqs=(
            DefaultFaq(
                question="¿Tienen servicio a domicilio?",
                answer="Sí, contamos con servicio de delivery. Puedes ordenar por WhatsApp o nuestra página web.",
                category="delivery",
            ),
            DefaultFaq(
                question="¿Se puede hacer reservación?",
                answer=(
                    "Por supuesto, puedes hacer tu reservación por WhatsApp "
                    "indicando fecha, hora y número de personas."
                ),
                category="reservaciones",
            ),
        ),
    ),
    "medical": VerticalDefaults(
        vertical="medical",
        display_name="Clínica Médica",
        default_services=("Consulta General", "Especialidades", "Laboratorio", "Rayos X", "Urgencias"),
        sidebar_config=(
            _DASHBOARD,
            _nav("patients", "Pacientes", "Users", "/dashboard/patients"),
            _nav("calendario", "Citas", "Calendar", "/dashboard/calendario"),
            _nav("inbox", "Mensajes", "MessageSquare", "/dashboard/inbox"),
            _ANALYTICS,
            _SETTINGS,
        ),
        default_faqs=(
            DefaultFaq(
                question="¿Necesito cita previa?",
                answer=(
                    "Para consultas generales se recomienda agendar cita. "
                    "Para urgencias, atendemos sin cita previa."
                ),
                category="general",
            ),
        ),
    ),
    "services": VerticalDefaults(
        vertical="services",
        display_name="Servicios Generales",
        default_services=("Consultoría", "Asesoría", "Servicio a Domicilio", "Cotizaciones"),
        sidebar_config=(
            _DASHBOARD,
            _nav("leads", "Leads", "Users", "/dashboard/leads"),
            _nav("calendario", "Citas", "Calendar", "/dashboard/calendario"),
            _nav("inbox", "Inbox", "MessageSquare", "/dashboard/inbox"),
            _nav("quotes", "Cotizaciones", "FileText", "/dashboard/quotes"),
            _ANALYTICS,
            _SETTINGS,
        ),
        default_faqs=(
            DefaultFaq(
                question="¿Cómo puedo solicitar una cotización?",
                answer=(
                    "Puedes solicitar una cotización por WhatsApp describiendo lo que necesitas "
                    "y te responderemos a la brevedad."
                ),
                category="cotizaciones",
            ),
        ),
    ),
}


def get_vertical_defaults(vertical: str | None) -> VerticalDefaults:
    # Unknown verticals reuse the generic services configuration instead of failing.
    key = (vertical or "").strip().lower()
    return VERTICAL_DEFAULTS.get(key, VERTICAL_DEFAULTS[FALLBACK_VERTICAL])
