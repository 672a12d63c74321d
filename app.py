from __future__ import annotations
import logging
import streamlit as st
import pandas as pd
from datetime import date, timedelta
from typing import List, Optional
from pydantic import ValidationError

from api_client import ApiClient, ApiError
from auth import SessionStore
from calendar_export import blocks_to_ics
from catalog import next_topic_order, save_topic_move, sort_topics
from config import configure_logging, load_settings
from models import (
    NEW_PLAN_SITUATION,
    SESSION_CATEGORIES,
    DaySlot,
    Discipline,
    DisciplineInput,
    PlanInput,
    StudyBlock,
    StudyPlan,
    TopicInput,
    User,
    validation_message,
)
from pdf_export import week_blocks_to_pdf
from planner import (
    DAY_LABELS,
    PlanningError,
    blocks_by_day,
    distribute_weekly_hours,
    generate_study_blocks,
    hours_by_day,
    hours_to_hhmm,
    planning_key,
    prepare_submission,
    seed_day_slots,
    seed_disciplines,
    validate_planning,
)
from progress import (
    discipline_progress,
    question_performance,
    topic_coverage,
    total_study_time,
    upcoming_reviews,
)
from study_log import SessionFormError, build_session, pending_topics, record_session
from sync import save_planning


logger = logging.getLogger(__name__)

st.set_page_config(page_title="Studium", page_icon="📚", layout="wide")


def _ensure_session_state() -> ApiClient:
    if "client" not in st.session_state:
        settings = load_settings()
        configure_logging(settings.log_level)
        st.session_state.settings = settings
        st.session_state.client = ApiClient(settings, SessionStore())
    return st.session_state.client


def _queue_toast(message: str) -> None:
    st.session_state.toast_message = message


def _flush_toast() -> None:
    message = st.session_state.pop("toast_message", None)
    if message:
        st.toast(message)


PAGES = ["Planning", "Board", "Log session", "Disciplines", "Progress", "Plans"]
WIDGET_PREFIXES = ("day_hours_", "sel_", "imp_", "know_")


def _reset_form() -> None:
    for key in ("form_plan_id", "form_disciplines", "form_days", "preview_blocks", "preview_key"):
        st.session_state.pop(key, None)
    for key in [k for k in st.session_state if str(k).startswith(WIDGET_PREFIXES)]:
        del st.session_state[key]


def _load_plan(client: ApiClient, plan_id: int) -> None:
    st.session_state.plan_disciplines = client.list_disciplines(plan_id)
    st.session_state.plan_blocks = client.list_blocks(plan_id)
    st.session_state.loaded_plan_id = plan_id


def _open_form(plan: StudyPlan) -> None:
    if st.session_state.get("form_plan_id") == plan.id:
        return
    blocks: List[StudyBlock] = st.session_state.plan_blocks
    st.session_state.form_plan_id = plan.id
    st.session_state.form_disciplines = seed_disciplines(st.session_state.plan_disciplines, blocks)
    st.session_state.form_days = seed_day_slots(blocks, plan)
    st.session_state.preview_blocks = []


def render_login(client: ApiClient) -> None:
    st.header("Sign in")
    with st.form("login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")
    if submitted:
        if not username.strip() or not password:
            st.warning("Username and password are required.")
            return
        try:
            client.login(username.strip(), password)
        except ApiError as e:
            st.error(f"Could not sign in: {e.message}")
        else:
            _queue_toast("Signed in.")
            st.rerun()


def render_planning(client: ApiClient, plan: StudyPlan) -> None:
    st.header("Planning")
    _open_form(plan)

    disciplines: List[Discipline] = st.session_state.form_disciplines
    days: List[DaySlot] = st.session_state.form_days

    if not disciplines:
        st.info("This plan has no disciplines yet. Add them on the Disciplines page.")
        return

    col_disc, col_days = st.columns([2, 1])

    with col_days:
        st.subheader("Study days")
        new_days = []
        for slot in days:
            hours = st.number_input(
                DAY_LABELS[slot.day_of_week],
                min_value=0.0,
                max_value=24.0,
                value=float(slot.planned_hours),
                step=0.5,
                key=f"day_hours_{plan.id}_{slot.day_of_week}",
            )
            new_days.append(DaySlot(day_of_week=slot.day_of_week, planned_hours=hours))
        days = new_days
        st.metric("Weekly total", f"{sum(d.planned_hours for d in days):.1f}h")

    with col_disc:
        st.subheader("Disciplines")
        selected_count = sum(1 for d in disciplines if d.selected)
        st.caption(f"{selected_count} of {len(disciplines)} selected")
        edited = []
        for d in disciplines:
            with st.container(border=True):
                selected = st.checkbox(d.title, value=d.selected, key=f"sel_{plan.id}_{d.id}")
                c1, c2 = st.columns(2)
                importance = c1.slider(
                    "Importance", 0.0, 5.0, float(d.importance), 0.5,
                    key=f"imp_{plan.id}_{d.id}",
                )
                knowledge = c2.slider(
                    "Knowledge", 0.0, 5.0, float(d.knowledge), 0.5,
                    key=f"know_{plan.id}_{d.id}",
                )
            edited.append(d.model_copy(update={
                "selected": selected,
                "importance": importance,
                "knowledge": knowledge,
            }))
        disciplines = edited

    # Weekly hours follow the current sliders and day hours on every rerun
    disciplines = distribute_weekly_hours(disciplines, days)
    st.session_state.form_disciplines = disciplines
    st.session_state.form_days = days

    st.subheader("Weekly hours")
    rows = [
        {
            "Discipline": d.title,
            "Selected": d.selected,
            "Importance": d.importance,
            "Knowledge": d.knowledge,
            "Hours/week": d.weekly_hours,
        }
        for d in disciplines
    ]
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    errors = validate_planning(disciplines, days)
    for message in errors.values():
        st.warning(message)

    key = planning_key(disciplines, days)
    if st.session_state.get("preview_key") != key:
        st.session_state.preview_blocks = []

    col_gen, col_save = st.columns([1, 1])
    if col_gen.button("Generate study blocks", type="primary"):
        result = generate_study_blocks(disciplines, days)
        if not result.ok:
            st.toast(result.error)
            st.session_state.preview_blocks = []
        else:
            st.session_state.preview_blocks = result.blocks
            st.session_state.preview_key = key

    preview: List[StudyBlock] = st.session_state.get("preview_blocks", [])
    if preview:
        st.subheader("Preview")
        render_week_board(preview, disciplines)

    if col_save.button("Save planning", disabled=not preview):
        try:
            submission = prepare_submission(disciplines, days)
            save_planning(
                client,
                plan.id,
                submission,
                st.session_state.plan_blocks,
                max_workers=st.session_state.settings.max_parallel_requests,
            )
        except PlanningError as e:
            st.toast(str(e))
        except ApiError as e:
            logger.error("Saving planning for plan %s failed: %s", plan.id, e)
            st.toast(f"Could not save the planning: {e.message}")
        else:
            _load_plan(client, plan.id)
            _reset_form()
            _queue_toast("Planning saved.")
            st.rerun()

    if st.button("Discard changes"):
        _reset_form()
        st.rerun()


def render_week_board(blocks: List[StudyBlock], disciplines: List[Discipline]) -> None:
    names = {d.id: d.title for d in disciplines}
    grouped = blocks_by_day(blocks)
    totals = hours_by_day(blocks)
    columns = st.columns(7)
    for i, col in enumerate(columns):
        with col:
            st.markdown(f"**{DAY_LABELS[i]}**")
            if totals.get(i):
                st.caption(hours_to_hhmm(totals[i]))
            if not grouped[i]:
                st.caption("No blocks planned")
            for b in grouped[i]:
                done = " ✓" if b.completed else ""
                st.write(f"{b.order}. {names.get(b.discipline_id, b.discipline_id)} ({hours_to_hhmm(b.duration_hours)}){done}")


def render_board(plan: StudyPlan) -> None:
    st.header("Weekly board")
    blocks: List[StudyBlock] = st.session_state.plan_blocks
    disciplines: List[Discipline] = st.session_state.plan_disciplines
    if not blocks:
        st.info("No study blocks yet. Create a planning first.")
        return
    render_week_board(blocks, disciplines)

    st.divider()
    st.subheader("Exports")
    today = date.today()
    week_start = st.date_input("Week starting", value=today - timedelta(days=(today.weekday() + 1) % 7))
    settings = st.session_state.settings
    st.download_button(
        "Download ICS",
        data=blocks_to_ics(blocks, disciplines, week_start, settings.study_start_hour, settings.timezone),
        file_name=f"studium_{plan.id}_{week_start.isoformat()}.ics",
        mime="text/calendar",
    )
    st.download_button(
        "Download PDF",
        data=week_blocks_to_pdf(blocks, disciplines, week_start, plan.title),
        file_name=f"studium_{plan.id}_{week_start.isoformat()}.pdf",
        mime="application/pdf",
    )


def render_progress(client: ApiClient, plan: StudyPlan) -> None:
    st.header("Progress")
    try:
        sessions = client.list_sessions(plan.id)
        reviews = client.list_reviews(plan.id)
        topics = [t for d in st.session_state.plan_disciplines for t in client.list_topics(d.id)]
    except ApiError as e:
        st.error(f"Could not load history: {e.message}")
        return

    a, b, c = st.columns(3)
    a.metric("Time studied", total_study_time(sessions))
    b.metric("Correct answers", f"{question_performance(sessions)}%")
    c.metric("Topic coverage", f"{topic_coverage(topics)}%")

    st.divider()
    st.subheader("By discipline")
    df = discipline_progress(st.session_state.plan_disciplines, st.session_state.plan_blocks, sessions)
    if df.empty:
        st.info("No disciplines yet.")
    else:
        st.dataframe(
            df,
            use_container_width=True,
            hide_index=True,
            column_config={
                "Completion %": st.column_config.NumberColumn("Completion %", format="%.1f%%"),
            },
        )

    st.subheader("Upcoming reviews")
    names = {d.id: d.title for d in st.session_state.plan_disciplines}
    pending = upcoming_reviews(reviews, date.today())
    if not pending:
        st.info("No reviews scheduled.")
    else:
        st.table([
            {
                "Date": r.data_programada.date().isoformat(),
                "Review #": r.numero,
                "Discipline": names.get(r.discipline_id, ""),
            }
            for r in pending
        ])


def _refresh_plan(client: ApiClient, plan_id: int, message: str) -> None:
    _load_plan(client, plan_id)
    _reset_form()
    _queue_toast(message)
    st.rerun()


def render_plan_form(client: ApiClient, user: User, plan: Optional[StudyPlan] = None) -> None:
    editing = plan is not None
    with st.form(f"plan_form_{plan.id if editing else 'new'}", clear_on_submit=not editing):
        title = st.text_input("Title", value=plan.title if editing else "")
        c1, c2, c3 = st.columns(3)
        concurso = c1.text_input("Exam", value=(plan.concurso or "") if editing else "")
        cargo = c2.text_input("Position", value=(plan.cargo or "") if editing else "")
        banca = c3.text_input("Exam board", value=(plan.banca or "") if editing else "")
        exam_default = plan.exam_date.date() if editing and plan.exam_date else date.today()
        exam_date = st.date_input("Exam date", value=exam_default)
        submitted = st.form_submit_button("Save plan" if editing else "Create plan", type="primary")
    if not submitted:
        return

    try:
        form = PlanInput(
            title=title,
            concurso=concurso,
            cargo=cargo,
            banca=banca,
            exam_date=exam_date,
            user_id=user.id,
            situacao=plan.situacao if editing else NEW_PLAN_SITUATION,
        )
    except ValidationError as e:
        st.warning(validation_message(e))
        return

    try:
        if editing:
            client.update_plan(plan.id, form.to_api())
        else:
            created = client.create_plan(form)
            st.session_state.pending_plan_id = created.id
    except ApiError as e:
        st.error(f"Could not save the plan: {e.message}")
        return
    st.session_state.pop("loaded_plan_id", None)
    _queue_toast("Plan saved." if editing else "Plan created.")
    st.rerun()


def render_plans(client: ApiClient, user: User, plan: StudyPlan) -> None:
    st.header("Study plans")
    st.subheader(f"Edit '{plan.title}'")
    render_plan_form(client, user, plan)

    if st.button("Delete plan"):

        @st.dialog("Delete study plan?")
        def _confirm_plan_delete() -> None:
            st.write(f"Delete '{plan.title}' with its disciplines, blocks and history?")
            if st.button("Delete", type="primary"):
                try:
                    client.delete_plan(plan.id)
                except ApiError as e:
                    st.error(f"Could not delete the plan: {e.message}")
                    return
                st.session_state.pending_plan_id = None
                st.session_state.pop("loaded_plan_id", None)
                _reset_form()
                _queue_toast("Plan deleted.")
                st.rerun()

        _confirm_plan_delete()

    st.divider()
    st.subheader("New plan")
    render_plan_form(client, user)


def _discipline_form(key: str, initial: DisciplineInput, label: str) -> Optional[dict]:
    with st.form(key, clear_on_submit=key.endswith("new")):
        c1, c2 = st.columns([3, 1])
        title = c1.text_input("Name", value=initial.title)
        color = c2.color_picker("Color", value=initial.color)
        c3, c4 = st.columns(2)
        importance = c3.slider("Importance", 0.0, 5.0, float(initial.importance), 0.5)
        knowledge = c4.slider("Knowledge", 0.0, 5.0, float(initial.knowledge), 0.5)
        if not st.form_submit_button(label, type="primary"):
            return None
    return {"title": title, "color": color, "importance": importance, "knowledge": knowledge}


def render_topics(client: ApiClient, discipline: Discipline) -> None:
    try:
        topics = sort_topics(client.list_topics(discipline.id))
    except ApiError as e:
        st.error(f"Could not load topics: {e.message}")
        return

    if not topics:
        st.caption("No topics yet.")
    for i, topic in enumerate(topics):
        c_title, c_done, c_syllabus, c_up, c_down, c_del = st.columns([6, 1, 1, 1, 1, 1])
        c_title.write(f"#{topic.order} {topic.title}")
        done = c_done.checkbox("Done", value=topic.concluido, key=f"topic_done_{topic.id}")
        syllabus = c_syllabus.checkbox("Syllabus", value=topic.edital, key=f"topic_edital_{topic.id}")
        try:
            if done != topic.concluido:
                client.update_topic(topic.id, {"concluido": done})
                st.rerun()
            if syllabus != topic.edital:
                client.update_topic(topic.id, {"edital": syllabus})
                st.rerun()
            if c_up.button("↑", key=f"topic_up_{topic.id}", disabled=i == 0):
                save_topic_move(client, topics, topic.id, -1)
                st.rerun()
            if c_down.button("↓", key=f"topic_down_{topic.id}", disabled=i == len(topics) - 1):
                save_topic_move(client, topics, topic.id, 1)
                st.rerun()
            if c_del.button("✕", key=f"topic_del_{topic.id}"):
                client.delete_topic(topic.id)
                _queue_toast("Topic deleted.")
                st.rerun()
        except ApiError as e:
            st.error(f"Could not update the topic: {e.message}")

    with st.form(f"topic_form_{discipline.id}", clear_on_submit=True):
        title = st.text_input("New topic")
        submitted = st.form_submit_button("Add topic")
    if submitted:
        try:
            form = TopicInput(title=title, order=next_topic_order(topics), discipline_id=discipline.id)
        except ValidationError as e:
            st.warning(validation_message(e))
            return
        try:
            client.create_topic(form)
        except ApiError as e:
            st.error(f"Could not create the topic: {e.message}")
            return
        _queue_toast("Topic added.")
        st.rerun()


def render_disciplines(client: ApiClient, plan: StudyPlan) -> None:
    st.header("Disciplines")
    disciplines: List[Discipline] = st.session_state.plan_disciplines

    st.subheader("Add discipline")
    values = _discipline_form("discipline_form_new", DisciplineInput.model_construct(title=""), "Add discipline")
    if values is not None:
        try:
            form = DisciplineInput(plan_id=plan.id, **values)
            client.create_discipline(form)
        except ValidationError as e:
            st.warning(validation_message(e))
        except ApiError as e:
            st.error(f"Could not create the discipline: {e.message}")
        else:
            _refresh_plan(client, plan.id, "Discipline added.")

    st.divider()
    if not disciplines:
        st.info("No disciplines yet.")
        return

    titles = {d.id: d.title for d in disciplines}
    discipline_id = st.selectbox("Discipline", options=list(titles), format_func=lambda i: titles[i])
    discipline = next(d for d in disciplines if d.id == discipline_id)

    st.subheader(f"Edit '{discipline.title}'")
    values = _discipline_form(
        f"discipline_form_{discipline.id}",
        DisciplineInput.from_discipline(discipline),
        "Save discipline",
    )
    if values is not None:
        try:
            form = DisciplineInput(plan_id=plan.id, **values)
            client.update_discipline(discipline.id, form.to_api())
        except ValidationError as e:
            st.warning(validation_message(e))
        except ApiError as e:
            st.error(f"Could not save the discipline: {e.message}")
        else:
            _refresh_plan(client, plan.id, "Discipline saved.")

    if st.button("Delete discipline"):

        @st.dialog("Delete discipline?")
        def _confirm_discipline_delete() -> None:
            st.write(f"Delete '{discipline.title}' with its topics and blocks?")
            if st.button("Delete", type="primary"):
                try:
                    client.delete_discipline(discipline.id)
                except ApiError as e:
                    st.error(f"Could not delete the discipline: {e.message}")
                    return
                _refresh_plan(client, plan.id, "Discipline deleted.")

        _confirm_discipline_delete()

    with st.expander("Topics", expanded=True):
        render_topics(client, discipline)


def render_log_session(client: ApiClient, plan: StudyPlan) -> None:
    st.header("Log study session")
    blocks = [b for b in st.session_state.plan_blocks if b.id is not None]
    if not blocks:
        st.info("No saved study blocks yet. Save a planning first.")
        return

    names = {d.id: d.title for d in st.session_state.plan_disciplines}
    ordered = [b for day in blocks_by_day(blocks).values() for b in day]
    block_id = st.selectbox(
        "Study block",
        options=[b.id for b in ordered],
        format_func=lambda i: next(
            f"{DAY_LABELS[b.day_of_week]} #{b.order} {names.get(b.discipline_id, b.discipline_id)} ({hours_to_hhmm(b.duration_hours)})"
            for b in ordered if b.id == i
        ),
    )
    block = next(b for b in ordered if b.id == block_id)

    try:
        topics = pending_topics(client.list_topics(block.discipline_id))
    except ApiError as e:
        st.error(f"Could not load topics: {e.message}")
        return
    if not topics:
        st.info("This discipline has no open syllabus topics. Add topics on the Disciplines page.")
        return
    topic_titles = {t.id: t.title for t in topics}

    with st.form("session_form", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        started_on = c1.date_input("Date", value=date.today())
        category = c2.selectbox("Category", options=list(SESSION_CATEGORIES), format_func=SESSION_CATEGORIES.get)
        hours = c3.number_input("Time (hours)", min_value=0.0, max_value=24.0, value=0.0, step=0.25)
        topic_id = st.selectbox("Topic", options=list(topic_titles), format_func=lambda i: topic_titles[i])
        c4, c5, c6 = st.columns(3)
        right = c4.number_input("Correct answers", min_value=0, value=0, step=1)
        wrong = c5.number_input("Wrong answers", min_value=0, value=0, step=1)
        pages = c6.number_input("Pages read", min_value=0, value=0, step=1)
        notes = st.text_area("Notes (optional)", height=80)
        finished = st.checkbox("Topic finished")
        schedule = st.checkbox("Schedule a review")
        submitted = st.form_submit_button("Log session", type="primary")
    if not submitted:
        return

    try:
        session = build_session(
            plan.id, block, topic_id, category, float(hours), started_on,
            questions_right=int(right),
            questions_wrong=int(wrong),
            pages_read=int(pages),
            topic_finished=finished,
            notes=notes,
        )
        logged = record_session(client, session, block, schedule_review=schedule)
    except SessionFormError as e:
        st.warning(str(e))
        return
    except ApiError as e:
        logger.error("Logging a session on block %s failed: %s", block.id, e)
        st.error(f"Could not log the session: {e.message}")
        return

    message = f"Logged {hours_to_hhmm(session.tempo_estudo)} of study."
    if logged.block_completed:
        message += " Block completed."
    if logged.review is not None:
        message += f" Review #{logged.review.numero} scheduled."
    _refresh_plan(client, plan.id, message)


client = _ensure_session_state()

st.title("Studium")
st.caption("Study plans, weekly blocks and progress.")
_flush_toast()

if not client.sessions.is_authenticated:
    render_login(client)
    st.stop()

user = client.sessions.session.user
with st.sidebar:
    st.header("Account")
    st.write(user.nome or user.username if user else "Signed in")
    if st.button("Sign out"):
        client.logout()
        _reset_form()
        st.rerun()

    if user is None:
        st.warning("No user in the session, sign in again.")
        st.stop()

    try:
        plans = client.list_plans(user.id)
    except ApiError as e:
        st.error(f"Could not load study plans: {e.message}")
        st.stop()

    if plans:
        titles = {p.id: p.title for p in plans}
        # a plan created or deleted on the last run decides the selection
        if "pending_plan_id" in st.session_state:
            st.session_state.selected_plan_id = st.session_state.pop("pending_plan_id")
        if st.session_state.get("selected_plan_id") not in titles:
            st.session_state.pop("selected_plan_id", None)
        plan_id = st.selectbox(
            "Study plan",
            options=list(titles),
            format_func=lambda i: titles[i],
            key="selected_plan_id",
        )
        plan = next(p for p in plans if p.id == plan_id)

        st.divider()
        page = st.radio("Navigate", PAGES, key="nav_page")

if not plans:
    st.header("Create your first study plan")
    render_plan_form(client, user)
    st.stop()

if st.session_state.get("loaded_plan_id") != plan.id:
    try:
        _load_plan(client, plan.id)
    except ApiError as e:
        st.error(f"Could not load the plan: {e.message}")
        st.stop()
    _reset_form()

if page == "Planning":
    render_planning(client, plan)
elif page == "Board":
    render_board(plan)
elif page == "Log session":
    render_log_session(client, plan)
elif page == "Disciplines":
    render_disciplines(client, plan)
elif page == "Progress":
    render_progress(client, plan)
elif page == "Plans":
    render_plans(client, user, plan)
