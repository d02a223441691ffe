"""
Competition Dashboard - Streamlit Front-End
Check-in desk, judge scoring and admin dashboard behind role-gated sign-in
"""

from datetime import datetime, time

import pandas as pd
import streamlit as st
from loguru import logger
from streamlit.errors import StreamlitAPIException

from config import settings, setup_logging
from database import ChangeFeed, DatabaseManager, TeamProjection
from models import CRITERIA, DEFAULT_CRITERION_SCORE, MAX_CRITERION_SCORE, MIN_CRITERION_SCORE, Category, TeamStatus
from services import (
    CheckInService,
    IdentityGate,
    IdentityProvider,
    ReportingService,
    ScoringService,
    TeamRegistryService,
)
from services.checkin import available_actions
from services.identity import VIEW_CHECK_IN, VIEW_DASHBOARD, VIEW_SCORING, allowed_views, default_view
from services.reporting import format_local_time

VIEW_LABELS = {
    VIEW_CHECK_IN: "📋 Check-In",
    VIEW_SCORING: "⚖️ Scoring",
    VIEW_DASHBOARD: "📊 Dashboard",
}

STATUS_BADGES = {
    TeamStatus.REGISTERED: "⚪ registered",
    TeamStatus.WAITING: "🟡 waiting",
    TeamStatus.CHECKED_IN: "🟢 checked-in",
    TeamStatus.COMPLETED: "🔵 completed",
}

# ================== SHARED RESOURCES ==================

@st.cache_resource
def get_database() -> DatabaseManager:
    setup_logging(settings.log_level)
    db_manager = DatabaseManager(settings.db_path)
    db_manager.initialize_database()
    return db_manager

@st.cache_resource
def get_feed() -> ChangeFeed:
    return ChangeFeed(get_database())

@st.cache_resource
def get_services():
    """Service objects shared by every browser session"""
    db_manager = get_database()
    feed = get_feed()
    provider = IdentityProvider(db_manager, iterations=settings.password_hash_iterations)
    return {
        "identity": IdentityGate(db_manager, provider=provider),
        "registry": TeamRegistryService(db_manager, feed=feed),
        "checkin": CheckInService(db_manager, feed=feed),
        "scoring": ScoringService(db_manager, feed=feed),
        "reporting": ReportingService(),
    }

def load_google_credentials():
    """Service-account info from Streamlit secrets, or None when not configured"""
    try:
        return dict(st.secrets["google"])
    except (KeyError, FileNotFoundError, StreamlitAPIException):
        return None

def teams_frame(teams):
    """Display table for a list of teams"""
    return pd.DataFrame([{
        "Team Number": team.team_number,
        "Team Name": team.team_name,
        "Category": team.category.value.upper(),
        "School": team.school_name,
        "Status": STATUS_BADGES[team.status],
        "Arrival Time": format_local_time(team.arrival_time),
        "Check-in Time": format_local_time(team.check_in_time),
    } for team in teams])

def show_result(success, message):
    if success:
        st.success(message)
    else:
        st.error(message)

# ================== SESSION ==================

def current_session():
    session = st.session_state.get("session")
    return session if session is not None and session.active else None

def start_session(session):
    """Store the signed-in session and open its live team subscription"""
    projection = TeamProjection()
    session.track(projection.attach(get_feed()))
    st.session_state.session = session
    st.session_state.teams = projection
    st.session_state.view = default_view(session.user)

def end_session():
    session = st.session_state.get("session")
    if session is not None:
        session.close()
    for key in ("session", "teams", "view", "scoring_team"):
        st.session_state.pop(key, None)

# ================== LOGIN ==================

def show_login():
    """Display the sign-in form"""
    st.subheader("🔐 Sign In")

    with st.form("login_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign In", type="primary")

    if submitted:
        success, message, session = get_services()["identity"].sign_in(email, password)
        if success:
            start_session(session)
            st.rerun()
        else:
            st.error(message)

# ================== CHECK-IN ==================

def request_status(team_number, status):
    success, message = get_services()["checkin"].update_status(team_number, status)
    show_result(success, message)

def show_check_in(session):
    """Display the check-in desk"""
    st.subheader("📋 Team Check-In")

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        team_number = st.text_input("Team Number", key="checkin_team_number")
    with col2:
        st.write("")
        check_in = st.button("Check In", type="primary", use_container_width=True)
    with col3:
        st.write("")
        send_to_waiting = st.button("Send to Waiting Area", use_container_width=True)

    if check_in:
        request_status(team_number, TeamStatus.CHECKED_IN)
    elif send_to_waiting:
        request_status(team_number, TeamStatus.WAITING)

    st.markdown("---")
    live_check_in_table()

@st.fragment(run_every=settings.live_refresh_seconds)
def live_check_in_table():
    """Team list with per-row actions, refreshed from the change feed"""
    get_feed().poll()
    projection = st.session_state.get("teams")
    if projection is None:
        return

    st.markdown("### Teams")
    teams = projection.all()
    if not teams:
        st.info("No teams registered yet")
        return

    header = st.columns([1, 3, 1, 2, 2, 2, 1, 1])
    for column, label in zip(header, ["#", "Team", "Category", "Status", "Arrival", "Check-in", "In", "Wait"]):
        column.markdown(f"**{label}**")

    for team in teams:
        actions = available_actions(team.status)
        row = st.columns([1, 3, 1, 2, 2, 2, 1, 1])
        row[0].write(team.team_number)
        row[1].write(team.team_name)
        row[2].write(team.category.value.upper())
        row[3].write(STATUS_BADGES[team.status])
        row[4].write(format_local_time(team.arrival_time))
        row[5].write(format_local_time(team.check_in_time))
        if row[6].button("✅", key=f"checkin_{team.id}", help="Check in", disabled=not actions["can_check_in"]):
            request_status(team.team_number, TeamStatus.CHECKED_IN)
        if row[7].button("⏳", key=f"wait_{team.id}", help="Send to waiting area", disabled=not actions["can_wait"]):
            request_status(team.team_number, TeamStatus.WAITING)

# ================== SCORING ==================

def show_scoring(session):
    """Display the judge scoring form"""
    st.subheader("⚖️ Team Scoring")
    scoring = get_services()["scoring"]

    with st.form("find_team_form"):
        team_number = st.text_input("Team Number")
        searched = st.form_submit_button("Search")

    if searched:
        team, message = scoring.find_team(team_number, session.user)
        st.session_state.scoring_team = team
        if team is None:
            st.error(message)

    team = st.session_state.get("scoring_team")
    if team is None:
        return

    st.markdown(f"### Team {team.team_number}")
    col1, col2 = st.columns(2)
    with col1:
        st.write(f"**Team Name:** {team.team_name}")
        st.write(f"**Category:** {team.category.value.upper()}")
        st.write(f"**School:** {team.school_name}")
    with col2:
        st.write(f"**Student 1:** {team.student1}")
        st.write(f"**Student 2:** {team.student2}")

    with st.form("score_form"):
        st.markdown("#### Scoring Criteria")
        rubric = {
            name: st.slider(
                name.capitalize(),
                min_value=MIN_CRITERION_SCORE,
                max_value=MAX_CRITERION_SCORE,
                value=DEFAULT_CRITERION_SCORE,
                key=f"score_{team.team_number}_{name}",
            )
            for name in CRITERIA
        }
        comments = st.text_area("Comments")
        submitted = st.form_submit_button("Submit Score", type="primary")

    if submitted:
        success, message = scoring.submit_score(team, session.user, rubric, comments)
        show_result(success, message)
        if success:
            st.session_state.pop("scoring_team", None)

# ================== DASHBOARD ==================

def show_dashboard(session):
    """Display the admin dashboard"""
    st.subheader(f"📊 {settings.competition_name} Dashboard")

    live_dashboard_overview()

    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        show_add_team_form()
    with col2:
        show_arrival_time_form()

    st.markdown("---")
    show_delete_team()

    st.markdown("---")
    show_results_section()

@st.fragment(run_every=settings.live_refresh_seconds)
def live_dashboard_overview():
    """Counts, chart and the team list, refreshed from the change feed"""
    get_feed().poll()
    projection = st.session_state.get("teams")
    if projection is None:
        return

    reporting = get_services()["reporting"]
    teams = projection.all()
    counts = reporting.get_status_counts(teams)

    metrics = [
        ("Total Teams", counts["total"]),
        ("Junior Teams", counts[Category.JUNIOR.value]),
        ("Senior Teams", counts[Category.SENIOR.value]),
        ("Waiting", counts[TeamStatus.WAITING.value]),
        ("Checked In", counts[TeamStatus.CHECKED_IN.value]),
        ("Completed", counts[TeamStatus.COMPLETED.value]),
    ]
    for column, (label, value) in zip(st.columns(len(metrics)), metrics):
        column.metric(label, value)

    if teams:
        st.plotly_chart(reporting.build_status_chart(counts), use_container_width=True)
        st.dataframe(teams_frame(teams), use_container_width=True, hide_index=True)
    else:
        st.info("No teams registered yet")

def show_add_team_form():
    st.markdown("### ➕ Add Team")
    with st.form("add_team_form", clear_on_submit=True):
        team_name = st.text_input("Team Name*")
        school_name = st.text_input("School Name*")
        team_number = st.text_input("Team Number*")
        category = st.selectbox(
            "Category*",
            [Category.JUNIOR.value, Category.SENIOR.value],
            format_func=lambda c: "Junior" if c == Category.JUNIOR.value else "Senior",
        )
        student1 = st.text_input("Student 1 Name*")
        student2 = st.text_input("Student 2 Name*")
        set_arrival = st.checkbox("Schedule an arrival time")
        arrival_date = st.date_input("Arrival Date")
        arrival_clock = st.time_input("Arrival Time", value=time(9, 0))

        if st.form_submit_button("Add Team", type="primary"):
            fields = {
                "team_name": team_name,
                "school_name": school_name,
                "team_number": team_number,
                "category": category,
                "student1": student1,
                "student2": student2,
            }
            if set_arrival:
                fields["arrival_time"] = datetime.combine(arrival_date, arrival_clock).astimezone().isoformat()
            success, message, _ = get_services()["registry"].add_team(fields)
            show_result(success, message)

def team_options():
    """Team id -> label, for selection widgets"""
    projection = st.session_state.get("teams")
    teams = projection.all() if projection is not None else []
    return {team.id: f"{team.team_number} - {team.team_name}" for team in teams}

def show_arrival_time_form():
    st.markdown("### 🕒 Arrival Time")
    options = team_options()
    if not options:
        st.info("No teams registered yet")
        return

    with st.form("arrival_form"):
        team_id = st.selectbox("Team", list(options.keys()), format_func=options.get)
        arrival_date = st.date_input("Date")
        arrival_clock = st.time_input("Time", value=time(9, 0))
        col1, col2 = st.columns(2)
        save = col1.form_submit_button("Set Arrival Time", type="primary")
        clear = col2.form_submit_button("Clear")

    registry = get_services()["registry"]
    if save:
        show_result(*registry.set_arrival_time(team_id, datetime.combine(arrival_date, arrival_clock).astimezone()))
    elif clear:
        show_result(*registry.set_arrival_time(team_id, None))

def show_delete_team():
    st.markdown("### 🗑️ Delete Team")
    options = team_options()
    if not options:
        return

    col1, col2, col3 = st.columns([3, 2, 1])
    with col1:
        team_id = st.selectbox("Team to delete", list(options.keys()), format_func=options.get, key="delete_team_id")
    with col2:
        st.write("")
        confirmed = st.checkbox("I understand this cannot be undone", key="delete_confirm")
    with col3:
        st.write("")
        if st.button("Delete", disabled=not confirmed):
            show_result(*get_services()["registry"].delete_team(team_id))

def show_results_section():
    """Score aggregates and result exports"""
    st.markdown("### 🏆 Results")
    services = get_services()
    scoring = services["scoring"]
    reporting = services["reporting"]

    if st.button("🔄 Recalculate Team Scores"):
        success, message, _ = scoring.recalculate_team_scores()
        show_result(success, message)

    team_scores = get_feed().once("team_scores")
    teams = st.session_state.teams.all()
    table = reporting.build_results_table(teams, team_scores)
    st.dataframe(table, use_container_width=True, hide_index=True)

    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "📥 Export to Excel",
            data=reporting.export_to_excel(table, sheet_name=settings.export_sheet_name),
            file_name=settings.export_filename,
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    with col2:
        credentials = load_google_credentials()
        publish_disabled = not (settings.google_sheet_key and credentials)
        if st.button("📤 Publish to Google Sheets", disabled=publish_disabled,
                     help="Needs GOOGLE_SHEET_KEY and a [google] service account in secrets"):
            show_result(*reporting.export_to_google_sheets(table, settings.google_sheet_key, credentials))

# ================== MAIN ==================

VIEW_RENDERERS = {
    VIEW_CHECK_IN: show_check_in,
    VIEW_SCORING: show_scoring,
    VIEW_DASHBOARD: show_dashboard,
}

def main():
    st.set_page_config(
        page_title=settings.competition_name,
        page_icon="🌉",
        layout="wide",
        initial_sidebar_state="expanded"
    )
    get_database()

    st.markdown(f"""
    <div style="text-align: center; margin-bottom: 30px;">
        <h1>🌉 {settings.competition_name}</h1>
        <p style="color: #666;">Check-In &amp; Judging</p>
    </div>
    """, unsafe_allow_html=True)

    session = current_session()
    if session is None:
        show_login()
        return

    views = allowed_views(session.user)
    with st.sidebar:
        st.markdown("### Signed In")
        st.write(session.user.name or session.user.email)
        st.caption(f"Role: {session.user.role.value}")

        view = st.radio(
            "Go to",
            views,
            index=views.index(st.session_state.get("view", views[0])) if st.session_state.get("view") in views else 0,
            format_func=VIEW_LABELS.get,
        )
        st.session_state.view = view

        if st.button("🚪 Sign Out"):
            logger.info(f"{session.user.email} signed out")
            end_session()
            st.rerun()

    if not session.can_access(view):
        st.error("You do not have access to this page")
        return

    VIEW_RENDERERS[view](session)

if __name__ == "__main__":
    main()
