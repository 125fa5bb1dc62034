"""
Streamlit Frontend for FinFlow

A thin shell over FinFlowSession: it renders engine output and sends
every write through the session's services.

DESIGN PRINCIPLES:
1. The UI never edits AppState directly
2. Forms are validated before "save" is accepted
3. Sync status is always visible
4. AI suggestions only pre-fill forms

Streamlit reruns the script without a long-lived event loop, so
the debounce timer cannot run here. After each write the page
flushes the store explicitly.
"""

import asyncio
from datetime import date, datetime, time
from decimal import Decimal

import streamlit as st

from finflow.agents import ChatMessage, ReceiptScanError
from finflow.config import get_settings, validate_all_settings
from finflow.ledger import (
    HistoryPeriod,
    category_breakdown,
    daily_balance,
    filter_history,
    items_on,
)
from finflow.models.ledger import DebtAction, TransactionType
from finflow.orchestrator import FinFlowSession, create_app_components
from finflow.services.host import InitDataError, NullHostBridge, TelegramHostBridge
from finflow.store import SyncStatus
from finflow.validation import TransactionForm


st.set_page_config(
    page_title="FinFlow",
    page_icon="💸",
    layout="centered",
)

SYNC_ICONS = {
    SyncStatus.LOCAL: "🕓 Есть несохранённые изменения",
    SyncStatus.SYNCING: "🔄 Синхронизация…",
    SyncStatus.SYNCED: "✅ Сохранено",
    SyncStatus.ERROR: "⚠️ Нет связи с сервером",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def build_host():
    init_data = st.query_params.get("tgWebAppData")
    if init_data:
        try:
            telegram = get_settings().telegram
            return TelegramHostBridge(
                init_data,
                telegram.bot_token,
                telegram.init_data_max_age_seconds,
            )
        except InitDataError as e:
            st.error(f"Не удалось проверить вход через Telegram: {e}")
        except Exception as e:
            st.warning(f"Telegram не настроен: {e}")
    return NullHostBridge()


@st.cache_resource
def get_session() -> FinFlowSession:
    """Get or create the session (cached), loading the user's document once."""
    session = create_app_components(host=build_host())
    run_async(session.start())
    return session


def commit(session: FinFlowSession):
    """Persist pending changes and refresh the page."""
    run_async(session.store.flush())
    st.rerun()


def money(value: Decimal, currency: str) -> str:
    return f"{value:,.2f} {currency}".replace(",", " ")


def main():
    session = get_session()
    currency = session.state.profile.currency

    st.sidebar.title("💸 FinFlow")
    st.sidebar.caption(SYNC_ICONS[session.store.status])
    page = st.sidebar.radio(
        "Раздел",
        ["🏠 Главная", "➕ Операция", "📜 История", "📅 Календарь", "🤖 AI-чат", "⚙️ Настройки"],
    )

    if page == "🏠 Главная":
        render_dashboard(session, currency)
    elif page == "➕ Операция":
        render_transaction_form(session)
    elif page == "📜 История":
        render_history(session, currency)
    elif page == "📅 Календарь":
        render_calendar(session, currency)
    elif page == "🤖 AI-чат":
        render_chat(session)
    else:
        render_settings(session)


def render_dashboard(session: FinFlowSession, currency: str):
    stats = session.dashboard()
    st.title(f"Привет, {session.state.profile.name}!")

    col1, col2, col3 = st.columns(3)
    col1.metric("Баланс", money(stats.current_balance, currency))
    col2.metric("Капитал", money(stats.net_worth, currency))
    col3.metric("Накопления", money(stats.total_savings_value, currency))

    col1, col2 = st.columns(2)
    col1.metric("Доходы за месяц", money(stats.month_income, currency))
    col2.metric("Расходы за месяц", money(stats.month_expense, currency))

    for reminder in session.reminders():
        when = "просрочено" if reminder.overdue else f"через {reminder.days_left} дн."
        st.info(f"{reminder.subscription.icon} {reminder.subscription.name}: {when}")

    st.subheader("Расходы по категориям")
    for group in category_breakdown(session.state.transactions, TransactionType.EXPENSE):
        category = session.state.find_category(group.category_id)
        label = f"{category.icon} {category.name}" if category else "📦 Без категории"
        st.write(f"{label}: {money(group.amount, currency)}")


def render_transaction_form(session: FinFlowSession):
    st.title("Новая операция")
    state = session.state

    uploaded = st.file_uploader("Фото чека", type=["jpg", "jpeg", "png", "webp"])
    if uploaded and session.receipt_agent and st.button("🔍 Распознать"):
        try:
            scan = run_async(session.receipt_agent.scan(uploaded.read(), state.categories))
            st.session_state.receipt = scan
        except ReceiptScanError as e:
            st.error(f"Ошибка анализа: {e}")
    scan = st.session_state.get("receipt")

    kind = st.selectbox("Тип", list(TransactionType), format_func=lambda t: t.value)
    amount = st.text_input("Сумма", value=str(scan.amount) if scan and scan.amount else "")
    categories = [c for c in state.categories if c.type == kind]
    category_ids = [c.id for c in categories]
    default_index = (
        category_ids.index(scan.category_id)
        if scan and scan.category_id in category_ids else 0
    )
    category = st.selectbox(
        "Категория",
        categories,
        index=default_index if categories else None,
        format_func=lambda c: f"{c.icon} {c.name}",
    )
    account = st.selectbox("Счёт", state.accounts, format_func=lambda a: f"{a.icon} {a.name}")
    day = st.date_input("Дата", value=date.today())
    note = st.text_input("Заметка", value=scan.note if scan else "")
    is_planned = st.checkbox("Запланировать")
    is_joint = st.checkbox("Совместная")

    debt_name = None
    debt_action = None
    if st.checkbox("Открыть долг"):
        debt_name = st.text_input("Имя")
        debt_action = DebtAction.INCREASE

    if st.button("Сохранить", type="primary"):
        form = TransactionForm(
            amount=amount,
            type=kind,
            category_id=category.id if category else "",
            account_id=account.id if account else "",
            date=datetime.combine(day, time()),
            note=note,
            is_planned=is_planned,
            is_joint=is_joint,
            debt_action=debt_action,
            new_debt_name=debt_name,
        )
        transaction, result = session.submit(form)
        for issue in result.issues:
            (st.error if issue.severity == "error" else st.warning)(issue.message)
        if transaction is not None:
            st.session_state.pop("receipt", None)
            commit(session)


def render_history(session: FinFlowSession, currency: str):
    st.title("История")
    period = st.selectbox("Период", list(HistoryPeriod), format_func=lambda p: p.value)
    query = st.text_input("Поиск")

    for t in filter_history(session.state, period=period, query=query):
        category = session.state.find_category(t.category_id)
        label = f"{category.icon} {category.name}" if category else "📦 Операция"
        sign = "+" if t.type == TransactionType.INCOME else "−"
        col1, col2 = st.columns([4, 1])
        col1.write(f"{t.day.isoformat()} {label} {sign}{money(t.amount, currency)} {t.note}")
        if col2.button("🗑️", key=f"del-{t.id}"):
            session.transactions.delete(t.id)
            commit(session)


def render_calendar(session: FinFlowSession, currency: str):
    st.title("Календарь")
    selected = st.date_input("День", value=date.today())
    items = items_on(session.planner.items(), selected)

    st.metric("Итог дня", money(daily_balance(items), currency))
    if not items:
        st.caption("На этот день ничего не запланировано")

    for item in items:
        col1, col2, col3 = st.columns([4, 1, 1])
        col1.write(f"{item.icon} {item.title}: {money(item.amount, currency)}")
        if col2.button("✅", key=f"exec-{item.item_type.value}-{item.id}"):
            session.planner.execute(item)
            commit(session)
        if col3.button("✖️", key=f"cancel-{item.item_type.value}-{item.id}"):
            session.planner.cancel(item)
            commit(session)


def render_chat(session: FinFlowSession):
    st.title("FinFlow AI")
    if session.chat_agent is None:
        st.warning("AI не настроен (нет GEMINI_API_KEY).")
        return

    history: list[ChatMessage] = st.session_state.setdefault("chat", [])
    for message in history:
        with st.chat_message(message.role):
            st.write(message.content)

    text = st.chat_input("Спросите о своих финансах")
    if text:
        history.append(ChatMessage(role="user", content=text))
        reply = run_async(session.chat_agent.send_message(history, session.state))
        history.append(ChatMessage(role="assistant", content=reply))
        st.rerun()


def render_settings(session: FinFlowSession):
    st.title("Настройки")

    name = st.text_input("Имя", value=session.state.profile.name)
    include_debts = st.checkbox(
        "Учитывать долги в капитале",
        value=session.state.profile.include_debts_in_capital,
    )
    if st.button("Сохранить профиль"):
        session.entities.update_profile(name=name, include_debts_in_capital=include_debts)
        commit(session)

    filename, payload = session.entities.export_json()
    st.download_button("Экспорт данных", payload, file_name=filename)

    with st.expander("Состояние конфигурации"):
        st.json(validate_all_settings())

    if st.button("Очистить все данные", type="secondary"):
        session.entities.reset_data()
        commit(session)


if __name__ == "__main__":
    main()
