"""HTTP and WebSocket routers, one module per resource."""

from dinehub.routers import (
    auth,
    feedback,
    hr,
    kitchen,
    loyalty,
    menu,
    orders,
    payments,
    realtime,
    reports,
    restaurants,
    settings,
    support,
    tables,
)

ALL_ROUTERS = [
    auth.router,
    restaurants.router,
    menu.router,
    tables.router,
    orders.router,
    kitchen.router,
    settings.router,
    loyalty.router,
    feedback.router,
    support.router,
    hr.router,
    payments.router,
    reports.router,
    realtime.router,
]
