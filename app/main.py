"""
Streamlit Frontend for Cashbook

Talks to the Cashbook HTTP API (``cashbook.api``) through
``CashbookApiClient``; it never touches the database directly.

DESIGN PRINCIPLES:
1. Every recognized row is shown for review before anything is saved
2. Clear error messages, shown where the action happened
3. One recognition in flight at a time
4. No hidden actions

Run with:
    streamlit run app/main.py
"""

import datetime as dt
from decimal import Decimal

import streamlit as st

from cashbook.categories import DEFAULT_COLOR, DEFAULT_ICON, resolve_category_name
from cashbook.client import (
    AVAILABLE_MODELS,
    ApiError,
    CandidateStatus,
    CashbookApiClient,
    DiscardCandidate,
    EditProposal,
    ProposalsConfirmed,
    RecognitionQueue,
    RemoveProposal,
    RetryCandidate,
    SettingsStore,
)
from cashbook.config import get_settings
from cashbook.models.finance import Category, Transaction, TransactionProposal, TransactionType
from cashbook.services.image import encode_image
from cashbook.stats import (
    aggregate_small_categories,
    available_years,
    balance,
    category_stats,
    filter_by_year,
    group_by_month,
    group_by_year,
    monthly_stats,
    to_chart_slices,
    total,
)


# Page configuration
st.set_page_config(
    page_title="Cashbook",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

TYPE_LABELS = {TransactionType.INCOME.value: "Income", TransactionType.EXPENSE.value: "Expense"}
STATUS_BADGES = {
    CandidateStatus.QUEUED: "⏳ Queued",
    CandidateStatus.PROCESSING: "🔄 Recognizing...",
    CandidateStatus.RECOGNIZED: "✅ Recognized",
    CandidateStatus.FAILED: "❌ Failed",
}


def format_currency(amount) -> str:
    return f"¥{Decimal(str(amount)):,.2f}"


@st.cache_resource
def get_settings_store() -> SettingsStore:
    return SettingsStore()


def get_client() -> CashbookApiClient:
    """One API client (and cookie jar) per browser session."""
    if "client" not in st.session_state:
        st.session_state.client = CashbookApiClient()
    return st.session_state.client


def get_queue() -> RecognitionQueue:
    if "queue" not in st.session_state:
        st.session_state.queue = RecognitionQueue()
        st.session_state.queued_uploads = set()
    return st.session_state.queue


def load_transactions(client: CashbookApiClient) -> list[Transaction]:
    return [Transaction.model_validate(t) for t in client.list_transactions()]


def load_categories(client: CashbookApiClient, category_type: str | None = None) -> list[Category]:
    return [Category.model_validate(c) for c in client.list_categories(category_type)]


def proposal_payload(proposal: TransactionProposal) -> dict:
    """JSON body for one confirmed row."""
    data = proposal.to_create_data()
    return {
        **data,
        "type": proposal.type.value,
        "amount": str(data["amount"]),
    }


def main():
    """Main application entry point."""
    client = get_client()

    if "user" not in st.session_state:
        st.session_state.user = None
        if client.is_authenticated:
            try:
                st.session_state.user = client.me()
            except ApiError:
                st.session_state.user = None

    if st.session_state.user is None:
        render_login_page(client)
        return

    # Sidebar navigation
    st.sidebar.title("💰 Cashbook")
    st.sidebar.caption(f"Signed in as **{st.session_state.user['username']}**")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📒 Transactions", "📤 Import Statement", "📊 Statistics", "🏷️ Categories", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("Log out"):
        try:
            client.logout()
        except ApiError as e:
            st.sidebar.error(e.message)
        st.session_state.user = None
        st.rerun()

    try:
        if page == "📒 Transactions":
            render_transactions_page(client)
        elif page == "📤 Import Statement":
            render_import_page(client)
        elif page == "📊 Statistics":
            render_stats_page(client)
        elif page == "🏷️ Categories":
            render_categories_page(client)
        elif page == "⚙️ Settings":
            render_settings_page(client)
    except ApiError as e:
        if e.status == 401:
            st.session_state.user = None
            st.warning("Your session has expired. Please log in again.")
        else:
            st.error(f"❌ {e.message}")


def render_login_page(client: CashbookApiClient):
    st.title("💰 Cashbook")
    st.markdown("Please log in to continue.")

    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Log in", type="primary")

    if submitted:
        if not username or not password:
            st.error("Username and password are required")
            return
        try:
            st.session_state.user = client.login(username, password)
            st.rerun()
        except ApiError as e:
            st.error(f"❌ {e.message}")


def render_transactions_page(client: CashbookApiClient):
    """List, add, edit and delete transactions."""
    st.title("📒 Transactions")

    transactions = load_transactions(client)
    categories = load_categories(client)

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", format_currency(total(transactions, TransactionType.INCOME)))
    col2.metric("Expense", format_currency(total(transactions, TransactionType.EXPENSE)))
    col3.metric("Balance", format_currency(balance(transactions)))

    with st.expander("➕ Add transaction"):
        render_transaction_form(client, categories)

    if not transactions:
        st.info("No transactions yet. Add one above or import a statement.")
        return

    for month in group_by_month(transactions):
        st.markdown(
            f"### {month.month_name} · income {format_currency(month.income)}"
            f" · expense {format_currency(month.expense)} · balance {format_currency(month.balance)}"
        )
        for day in month.daily_groups:
            st.caption(f"{day.date_display} · {day.count} item(s) · balance {format_currency(day.balance)}")
            for t in day.transactions:
                render_transaction_row(client, t, categories)


def render_transaction_form(client: CashbookApiClient, categories: list[Category]):
    transaction_type = st.radio(
        "Type",
        [TransactionType.EXPENSE.value, TransactionType.INCOME.value],
        format_func=TYPE_LABELS.get,
        horizontal=True,
        key="new_type",
    )
    options = [c for c in categories if c.type.value == transaction_type]

    with st.form("new_transaction", clear_on_submit=True):
        amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
        category = st.selectbox("Category", options, format_func=lambda c: f"{c.icon} {c.name}")
        description = st.text_input("Description")
        note = st.text_area("Note (optional)")
        date = st.date_input("Date", value=dt.date.today())
        submitted = st.form_submit_button("Save", type="primary")

    if submitted:
        if amount <= 0:
            st.error("Please enter an amount greater than zero")
            return
        try:
            client.create_transaction({
                "type": transaction_type,
                "amount": f"{amount:.2f}",
                "category": category.id,
                "description": description,
                "note": note or None,
                "date": date.isoformat(),
            })
            st.success("✅ Saved")
            st.rerun()
        except ApiError as e:
            st.error(f"❌ {e.message}")


def render_transaction_row(client: CashbookApiClient, t: Transaction, categories: list[Category]):
    name = resolve_category_name(t.category, categories)
    sign = "+" if t.type == TransactionType.INCOME else "-"

    col1, col2, col3 = st.columns([5, 2, 1])
    col1.markdown(f"**{name}** {t.description}" + (f"  \n_{t.note}_" if t.note else ""))
    col2.markdown(f"{sign}{format_currency(t.amount)}")
    if col3.button("🗑️", key=f"delete_{t.id}", help="Delete"):
        client.delete_transaction(t.id)
        st.rerun()

    with st.expander("Edit", expanded=False):
        with st.form(f"edit_{t.id}"):
            amount = st.number_input("Amount", value=float(t.amount), min_value=0.01, step=0.01, format="%.2f")
            description = st.text_input("Description", value=t.description)
            note = st.text_input("Note", value=t.note or "")
            date = st.date_input("Date", value=t.date)
            if st.form_submit_button("Update"):
                client.update_transaction(t.id, {
                    "amount": f"{amount:.2f}",
                    "description": description,
                    "note": note or None,
                    "date": date.isoformat(),
                })
                st.rerun()


def render_import_page(client: CashbookApiClient):
    """Upload statement images, recognize them one by one, review and confirm."""
    st.title("📤 Import Statement")
    st.markdown("Upload screenshots of bank or payment-app statements. Every row is shown for review before saving.")

    queue = get_queue()
    store = get_settings_store()
    client_settings = store.load()
    max_mb = get_settings().app.max_upload_size_mb

    uploaded_files = st.file_uploader(
        f"Statement images (JPG, PNG or WebP, up to {max_mb} MB each)",
        type=["jpg", "jpeg", "png", "webp"],
        accept_multiple_files=True,
    )
    for uploaded in uploaded_files or []:
        upload_key = f"{uploaded.name}:{uploaded.size}"
        if upload_key in st.session_state.queued_uploads:
            continue
        if uploaded.size > max_mb * 1024 * 1024:
            st.error(f"{uploaded.name} is larger than {max_mb} MB")
            continue
        queue.add(uploaded.name, encode_image(uploaded.getvalue()))
        st.session_state.queued_uploads.add(upload_key)

    state = queue.state
    if state.next_queued() is not None and not queue.is_draining:
        def recognizer(candidate):
            rows = client.recognize(
                candidate.image_base64,
                api_key=client_settings.api_key or None,
                model=client_settings.model,
            )
            return [TransactionProposal.model_validate(row) for row in rows]

        with st.spinner(f"Recognizing {state.count(CandidateStatus.QUEUED)} image(s)..."):
            queue.drain(recognizer)
        state = queue.state

    if not state.candidates:
        st.info("No statements in progress.")
        return

    categories = load_categories(client)

    for candidate in state.candidates:
        st.markdown("---")
        st.markdown(f"#### {candidate.filename} · {STATUS_BADGES[candidate.status]}")

        if candidate.status == CandidateStatus.FAILED:
            st.error(candidate.error)
            col1, col2 = st.columns(2)
            if col1.button("🔁 Retry", key=f"retry_{candidate.id}"):
                queue.dispatch(RetryCandidate(candidate_id=candidate.id))
                st.rerun()
            if col2.button("Discard", key=f"discard_{candidate.id}"):
                queue.dispatch(DiscardCandidate(candidate_id=candidate.id))
                st.rerun()
            continue

        if candidate.status != CandidateStatus.RECOGNIZED:
            continue

        if not candidate.proposals:
            st.warning("No transactions were found in this image.")
            if st.button("Discard", key=f"discard_{candidate.id}"):
                queue.dispatch(DiscardCandidate(candidate_id=candidate.id))
                st.rerun()
            continue

        render_candidate_review(client, queue, candidate, categories)


def render_candidate_review(client, queue, candidate, categories: list[Category]):
    for index, proposal in enumerate(candidate.proposals):
        # Row count in the key resets the widgets after a row is removed
        key = f"{candidate.id}_{len(candidate.proposals)}_{index}"
        options = [c for c in categories if c.type == proposal.type]
        option_ids = [c.id for c in options]

        col1, col2, col3, col4, col5 = st.columns([2, 2, 3, 4, 1])
        date = col1.text_input("Date", value=proposal.date, key=f"date_{key}")
        amount = col2.number_input("Amount", value=float(proposal.amount), min_value=0.0, step=0.01, key=f"amount_{key}")
        category = col3.selectbox(
            "Category",
            option_ids or [proposal.category],
            index=option_ids.index(proposal.category) if proposal.category in option_ids else 0,
            format_func=lambda cid: resolve_category_name(cid, categories),
            key=f"category_{key}",
        )
        description = col4.text_input("Description", value=proposal.description, key=f"desc_{key}")
        if col5.button("✖", key=f"remove_{key}", help="Remove this row"):
            queue.dispatch(RemoveProposal(candidate_id=candidate.id, index=index))
            st.rerun()
        if proposal.original_info:
            st.caption(proposal.original_info)

        changes = {"date": date, "amount": Decimal(f"{amount:.2f}"), "category": category, "description": description}
        if any(getattr(proposal, field) != value for field, value in changes.items()):
            queue.dispatch(EditProposal(candidate_id=candidate.id, index=index, changes=changes))

    col1, col2 = st.columns(2)
    if col1.button(f"✅ Save {len(candidate.proposals)} transaction(s)", key=f"confirm_{candidate.id}", type="primary"):
        current = queue.state.get(candidate.id)
        try:
            saved = client.create_transactions([proposal_payload(p) for p in current.proposals])
            queue.dispatch(ProposalsConfirmed(candidate_id=candidate.id, count=len(saved)))
            st.success(f"✅ Saved {len(saved)} transaction(s)")
            st.rerun()
        except ApiError as e:
            if e.failed_index is not None:
                queue.dispatch(ProposalsConfirmed(candidate_id=candidate.id, count=e.failed_index))
            st.error(f"❌ {e.message}")
    if col2.button("Discard all", key=f"discard_{candidate.id}"):
        queue.dispatch(DiscardCandidate(candidate_id=candidate.id))
        st.rerun()


def render_stats_page(client: CashbookApiClient):
    """Totals, trends and category breakdowns."""
    st.title("📊 Statistics")

    transactions = load_transactions(client)
    categories = load_categories(client)
    threshold = get_settings().app.small_category_threshold_percent

    years = available_years(transactions)
    year = st.selectbox("Year", ["All", *years], index=1 if years else 0)
    filtered = transactions if year == "All" else filter_by_year(transactions, year)

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", format_currency(total(filtered, TransactionType.INCOME)))
    col2.metric("Expense", format_currency(total(filtered, TransactionType.EXPENSE)))
    col3.metric("Balance", format_currency(balance(filtered)))

    if not filtered:
        st.info("No transactions in this period.")
        return

    overview, monthly, yearly, by_category = st.tabs(["Overview", "Monthly", "Yearly", "By category"])

    with overview:
        months = monthly_stats(filtered)
        st.line_chart(
            [{"month": m.full_month, "income": float(m.income), "expense": float(m.expense)} for m in months],
            x="month",
            y=["income", "expense"],
        )

    with monthly:
        st.table([
            {"Month": m.full_month, "Income": format_currency(m.income),
             "Expense": format_currency(m.expense), "Balance": format_currency(m.balance)}
            for m in monthly_stats(filtered)
        ])

    with yearly:
        st.table([
            {"Year": y.year, "Income": format_currency(y.income),
             "Expense": format_currency(y.expense), "Balance": format_currency(y.balance)}
            for y in group_by_year(transactions)
        ])

    with by_category:
        for transaction_type in (TransactionType.EXPENSE, TransactionType.INCOME):
            stats = category_stats(filtered, transaction_type, categories)
            st.markdown(f"#### {TYPE_LABELS[transaction_type.value]}")
            if not stats:
                st.caption("Nothing recorded.")
                continue
            slices = aggregate_small_categories(to_chart_slices(stats), threshold)
            st.bar_chart([{"category": s.name, "amount": float(s.value)} for s in slices], x="category", y="amount")
            for s in stats:
                st.markdown(f"{s.icon} **{s.name}** · {format_currency(s.amount)} · {s.percentage}%")


def render_categories_page(client: CashbookApiClient):
    """System categories are read-only; custom ones can be added, edited and deleted."""
    st.title("🏷️ Categories")

    for transaction_type in (TransactionType.EXPENSE, TransactionType.INCOME):
        st.markdown(f"### {TYPE_LABELS[transaction_type.value]}")
        for category in load_categories(client, transaction_type.value):
            col1, col2 = st.columns([6, 1])
            col1.markdown(f"{category.icon} {category.name}")
            if not category.id.startswith("custom-"):
                col2.caption("🔒 system")
                continue
            if col2.button("🗑️", key=f"delete_{category.id}"):
                try:
                    client.delete_category(category.id)
                    st.rerun()
                except ApiError as e:
                    st.error(f"❌ {e.message}")
            with st.expander(f"Edit {category.name}"):
                with st.form(f"edit_{category.id}"):
                    name = st.text_input("Name", value=category.name)
                    icon = st.text_input("Icon", value=category.icon)
                    color = st.color_picker("Color", value=category.color)
                    if st.form_submit_button("Update"):
                        client.update_category(category.id, {"name": name, "icon": icon, "color": color})
                        st.rerun()

    st.markdown("---")
    st.markdown("### ➕ New category")
    with st.form("new_category", clear_on_submit=True):
        category_type = st.radio(
            "Type",
            [TransactionType.EXPENSE.value, TransactionType.INCOME.value],
            format_func=TYPE_LABELS.get,
            horizontal=True,
        )
        name = st.text_input("Name")
        icon = st.text_input("Icon", value=DEFAULT_ICON)
        color = st.color_picker("Color", value=DEFAULT_COLOR)
        submitted = st.form_submit_button("Add", type="primary")

    if submitted:
        if not name.strip():
            st.error("Please enter a name")
            return
        try:
            client.create_category(category_type, name.strip(), icon, color)
            st.success("✅ Category added")
            st.rerun()
        except ApiError as e:
            st.error(f"❌ {e.message}")


def render_settings_page(client: CashbookApiClient):
    """Vision API key and model, stored on this machine only."""
    st.title("⚙️ Settings")

    store = get_settings_store()
    current = store.load()
    model_ids = [model_id for model_id, _, _ in AVAILABLE_MODELS]
    labels = {model_id: f"{name} - {description}" for model_id, name, description in AVAILABLE_MODELS}

    with st.form("client_settings"):
        api_key = st.text_input(
            "Gemini API key",
            value=current.api_key,
            type="password",
            help="Leave empty to use the server's default key",
        )
        model = st.radio(
            "Vision model",
            model_ids,
            index=model_ids.index(current.model) if current.model in model_ids else 0,
            format_func=labels.get,
        )
        col1, col2 = st.columns(2)
        save = col1.form_submit_button("Save", type="primary")
        reset = col2.form_submit_button("Reset to defaults")

    if save:
        store.save(api_key=api_key.strip(), model=model)
        st.success("✅ Settings saved")
    if reset:
        store.reset()
        st.success("Settings reset")
        st.rerun()

    st.markdown("---")
    st.markdown("### Server")
    try:
        health = client.health()
        st.success(f"✅ API reachable · database {health['database']}")
    except ApiError as e:
        st.error(f"❌ {e.message}")


if __name__ == "__main__":
    main()
