"""
Stake Indicators Dashboard

Records, aggregates and compares weekly ward indicators for a stake against
annual targets, and produces printable and exportable reports. Storage,
authentication and row-level security live in a hosted Supabase backend;
this package fetches, aggregates, validates and renders.

To swap the backend:
    BackendClient in stake_dashboard.backend is the only module that speaks
    HTTP. Replace it with any object offering select / select_with_count /
    insert / update / delete / rpc and the loaders, entry form and history
    ledger keep working. The frame schemas in stake_dashboard.loaders stay
    unchanged.

To connect to Streamlit:
    Build one client per session with backend.create_client(), sign in, then
    call dashboard.get_indicator_cards(...), report.build_report(...) and
    targets.ward_progress(...) for plain dicts and DataFrames ready for
    cards, Plotly charts and tables.

To add new indicators:
    Insert the indicator row in the backend, then add an entry to
    config.INDICATOR_REGISTRY keyed by its slug with the card mode,
    secondary line, short name and source-system link.
"""
