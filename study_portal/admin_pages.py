"""
Server-rendered admin console pages
"""
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from fastapi.responses import HTMLResponse

from study_portal.pages import esc, is_web_url, render_error, render_page
from study_portal.schemas import AdminStats, EnrollmentConfig, InvitationRow, LinkRow, PageOut, PoolStatus
from study_portal.services.tables import PER_PAGE_CHOICES, Page
from study_portal.session import Notification

NAV = (
    ("/admin-dashboard", "Dashboard"),
    ("/admin-ops", "Survey Links"),
    ("/admin-gift-cards", "Gift Cards"),
    ("/admin-enrollment", "Enrollment"),
)

LINK_STATUSES = ("AVAILABLE", "CLAIMED", "USED", "INVALID")


def admin_page(title: str, body: str, notification: Optional[Notification] = None) -> HTMLResponse:
    links = "".join(f'<a href="{href}">{label}</a>' for href, label in NAV)
    nav = f"""
    <nav class="card">
        {links}
        <form class="inline" method="post" action="/admin/logout">
            <button class="btn secondary small" type="submit">Logout</button>
        </form>
    </nav>
    """
    return render_page(title, nav + body, notification, wide=True)


def _search_form(action: str, query: str, per_page: int, extra: str = "") -> str:
    options = "".join(
        f'<option value="{n}"{" selected" if n == per_page else ""}>{n}</option>' for n in PER_PAGE_CHOICES
    )
    return f"""
    <form method="get" action="{action}">
        <input type="text" name="q" placeholder="Search..." value="{esc(query)}">
        {extra}
        <label class="inline">Per page <select name="per_page">{options}</select></label>
        <button class="btn small" type="submit">Apply</button>
    </form>
    """


def _pager(action: str, page: Page, params: Dict[str, Any]) -> str:
    def href(n: int) -> str:
        return f"{action}?{urlencode({**params, 'page': n, 'per_page': page.per_page})}"

    prev_link = f'<a href="{esc(href(page.page - 1))}">Previous</a>' if page.has_previous else "Previous"
    next_link = f'<a href="{esc(href(page.page + 1))}">Next</a>' if page.has_next else "Next"
    return (
        f"<p>Showing {page.first_index}-{page.last_index} of {page.total} | "
        f"{prev_link} | Page {page.page} of {max(page.total_pages, 1)} | {next_link}</p>"
    )


# -------------------------------------------
# Login
# -------------------------------------------

def login_page(error_message: str = "", expired: bool = False, username: str = "") -> HTMLResponse:
    notice = ""
    if expired:
        notice = '<div class="note info">Your session has expired. Please log in again.</div>'
    body = f"""
    <div class="card">
        <h2>Admin Login</h2>
        {notice}
        <form method="post" action="/admin-login">
            <label for="username">Username</label>
            <input id="username" name="username" type="text" value="{esc(username)}">
            <label for="password">Password</label>
            <input id="password" name="password" type="password">
            {render_error(error_message)}
            <p><button class="btn" type="submit">Log In</button></p>
        </form>
    </div>
    """
    return render_page("Admin Login", body)


# -------------------------------------------
# Dashboard
# -------------------------------------------

def _invitation_row(row: InvitationRow) -> str:
    completed = bool(row.completed_at)
    toggle = "uncomplete" if completed else "complete"
    raw_link = row.short_link or row.assigned_link
    link = esc(raw_link)
    link_cell = f'<a href="{link}" target="_blank" rel="noopener">{link}</a>' if is_web_url(raw_link) else link
    return f"""
    <tr>
        <td><input type="checkbox" name="ids" value="{esc(row.id)}" form="bulk-form"></td>
        <td>{esc(row.phone_number)}</td>
        <td>
            <form class="inline" method="post" action="/admin-dashboard/invitations/{esc(row.id)}/email">
                <input type="email" name="email" value="{esc(row.email)}">
                <button class="btn small secondary" type="submit">Save</button>
            </form>
        </td>
        <td>{link_cell}</td>
        <td>{esc(row.status)}</td>
        <td>{esc(row.sms_sent_at or '')}</td>
        <td>{'Yes' if completed else 'No'}</td>
        <td>
            <form class="inline" method="post" action="/admin-dashboard/invitations/{esc(row.id)}/remind">
                <input type="hidden" name="phone" value="{esc(row.phone_number)}">
                <button class="btn small" type="submit">Remind</button>
            </form>
            <form class="inline" method="post" action="/admin-dashboard/invitations/{esc(row.id)}/{toggle}">
                <button class="btn small secondary" type="submit">{'Mark incomplete' if completed else 'Mark completed'}</button>
            </form>
            <a class="btn small danger" href="/admin-dashboard/invitations/{esc(row.id)}/delete">Delete</a>
        </td>
    </tr>
    """


def dashboard_page(
    stats: AdminStats,
    page: Page,
    query: str,
    notification: Optional[Notification] = None,
    load_error: str = "",
) -> HTMLResponse:
    rows = "".join(_invitation_row(r) for r in page.items) or '<tr><td colspan="8">No records found</td></tr>'
    body = f"""
    <div class="card stats">
        <div class="stat"><b>{stats.total_verifications}</b>Total Verifications</div>
        <div class="stat"><b>{stats.used_links}</b>Used Links</div>
        <div class="stat"><b>{stats.available_links}</b>Available Links</div>
    </div>
    <div class="card">
        <h2>Survey Invitations</h2>
        {render_error(load_error)}
        {_search_form("/admin-dashboard", query, page.per_page)}
        <form id="bulk-form" method="post" action="/admin-dashboard/invitations/bulk">
            <button class="btn small" type="submit" name="action" value="complete">Mark selected completed</button>
            <button class="btn small secondary" type="submit" name="action" value="uncomplete">Mark selected incomplete</button>
        </form>
        <table>
            <thead><tr><th></th><th>Phone</th><th>Email</th><th>Link</th><th>SMS Status</th><th>Sent</th><th>Completed</th><th>Actions</th></tr></thead>
            <tbody>{rows}</tbody>
        </table>
        {_pager("/admin-dashboard", page, {"q": query})}
    </div>
    """
    return admin_page("Admin Dashboard", body, notification)


def delete_user_page(participant_id: str, info: Dict[str, Any]) -> HTMLResponse:
    details = "".join(
        f"<tr><th>{esc(key)}</th><td>{esc(value)}</td></tr>" for key, value in info.items()
    ) or '<tr><td>No details available</td></tr>'
    body = f"""
    <div class="card dialog">
        <h2>Delete Participant</h2>
        <p>This permanently removes the participant and everything linked to them.</p>
        <table>{details}</table>
        <form class="inline" method="post" action="/admin-dashboard/invitations/{esc(participant_id)}/delete">
            <button class="btn danger" type="submit">Delete</button>
        </form>
        <a class="btn secondary" href="/admin-dashboard">Cancel</a>
    </div>
    """
    return admin_page("Delete Participant", body)


# -------------------------------------------
# Survey links
# -------------------------------------------

def _link_row(row: LinkRow) -> str:
    return f"""
    <tr>
        <td>
            <form class="inline" method="post" action="/admin-ops/links/{esc(row.id)}/update">
                <input type="text" name="link" size="50" value="{esc(row.link_url)}">
                <button class="btn small secondary" type="submit">Save</button>
            </form>
        </td>
        <td>{esc(row.status)}</td>
        <td>{esc(row.batch_label or '')}</td>
        <td>{esc(row.uploaded_at or '')}</td>
        <td>
            <form class="inline" method="post" action="/admin-ops/links/{esc(row.id)}/delete">
                <button class="btn small danger" type="submit">Delete</button>
            </form>
        </td>
    </tr>
    """


def ops_page(
    page: Page,
    query: str,
    status: str,
    notification: Optional[Notification] = None,
    load_error: str = "",
) -> HTMLResponse:
    status_options = '<option value="">All statuses</option>' + "".join(
        f'<option value="{s}"{" selected" if s == status else ""}>{s}</option>' for s in LINK_STATUSES
    )
    rows = "".join(_link_row(r) for r in page.items) or '<tr><td colspan="5">No links found</td></tr>'
    body = f"""
    <div class="card">
        <h2>Upload Survey Links</h2>
        <form method="post" action="/admin-ops/links/upload" enctype="multipart/form-data">
            <input type="file" name="file" accept=".csv,text/csv">
            <label>Batch label <input type="text" name="batch_label"></label>
            <label>Uploaded by <input type="text" name="uploaded_by"></label>
            <label>Notes <input type="text" name="notes"></label>
            <p><button class="btn" type="submit">Upload</button></p>
        </form>
    </div>
    <div class="card">
        <h2>Survey Links</h2>
        {render_error(load_error)}
        {_search_form("/admin-ops", query, page.per_page, f'<select name="status">{status_options}</select>')}
        <table>
            <thead><tr><th>Link</th><th>Status</th><th>Batch</th><th>Uploaded</th><th></th></tr></thead>
            <tbody>{rows}</tbody>
        </table>
        {_pager("/admin-ops", page, {"q": query, "status": status})}
    </div>
    """
    return admin_page("Survey Links", body, notification)


# -------------------------------------------
# Gift cards
# -------------------------------------------

def _pool_status(pool: PoolStatus) -> str:
    by_type = ", ".join(f"{esc(k)}: {v}" for k, v in pool.cards_by_type.items()) or "none"
    return f"""
    <div class="card stats">
        <div class="stat"><b>{pool.total_cards}</b>Total</div>
        <div class="stat"><b>{pool.available_cards}</b>Available</div>
        <div class="stat"><b>{pool.assigned_cards}</b>Assigned</div>
        <div class="stat"><b>{pool.expired_cards}</b>Expired</div>
        <div class="stat"><b>{pool.invalid_cards}</b>Invalid</div>
    </div>
    <p>By type: {by_type}</p>
    """


def _add_card_form() -> str:
    return """
    <div class="card">
        <h3>Add Gift Card to Pool</h3>
        <form method="post" action="/admin-gift-cards/pool/add">
            <label>Card code <input type="text" name="card_code" required></label>
            <label>Type
                <select name="card_type"><option>AMAZON</option><option>VISA</option><option>TARGET</option><option>OTHER</option></select>
            </label>
            <label>Value <input type="number" name="card_value" step="0.01" min="0.01" required></label>
            <label>Redemption URL <input type="text" name="redemption_url"></label>
            <label>Batch label <input type="text" name="batch_label"></label>
            <label>Notes <input type="text" name="notes"></label>
            <p><button class="btn" type="submit">Add Card</button></p>
        </form>
        <h3>Upload Gift Card Codes</h3>
        <form method="post" action="/admin-gift-cards/pool/upload" enctype="multipart/form-data">
            <input type="file" name="file" accept=".csv,.txt,text/csv,text/plain">
            <label>Batch label <input type="text" name="batch_label" required></label>
            <p><button class="btn" type="submit">Upload</button></p>
        </form>
    </div>
    """


def _eligible_row(p: Dict[str, Any], pool_options: str) -> str:
    participant_id = esc(p.get("participantId"))
    return f"""
    <tr>
        <td>{esc(p.get('participantName') or '')}</td>
        <td>{esc(p.get('participantPhone') or '')}</td>
        <td>{esc(p.get('participantEmail') or '')}</td>
        <td>{esc(p.get('surveyCompletedAt') or '')}</td>
        <td>
            <form class="inline" method="post" action="/admin-gift-cards/send/{participant_id}">
                <input type="hidden" name="invitation_id" value="{esc(p.get('invitationId'))}">
                <select name="pool_id"><option value="">Next available</option>{pool_options}</select>
                <select name="delivery_method"><option>BOTH</option><option>SMS</option><option>EMAIL</option></select>
                <button class="btn small" type="submit">Send</button>
            </form>
        </td>
    </tr>
    """


def _sent_row(card: Dict[str, Any]) -> str:
    card_id = esc(card.get("id"))
    return f"""
    <tr>
        <td>{esc(card.get('participantPhone') or '')}</td>
        <td>{esc(card.get('cardType') or '')} {esc(card.get('cardValue') or '')}</td>
        <td>{esc(card.get('status') or '')}</td>
        <td>{esc(card.get('sentAt') or '')}</td>
        <td>
            <form class="inline" method="post" action="/admin-gift-cards/{card_id}/notes">
                <input type="text" name="notes" value="{esc(card.get('notes') or '')}">
                <button class="btn small secondary" type="submit">Save</button>
            </form>
        </td>
        <td>
            <form class="inline" method="post" action="/admin-gift-cards/{card_id}/resend"><button class="btn small" type="submit">Resend</button></form>
            <form class="inline" method="post" action="/admin-gift-cards/{card_id}/unsend"><button class="btn small secondary" type="submit">Unsend</button></form>
            <form class="inline" method="post" action="/admin-gift-cards/{card_id}/delete"><button class="btn small danger" type="submit">Delete</button></form>
            <a href="/admin-gift-cards/{card_id}/logs">Logs</a>
        </td>
    </tr>
    """


def _pool_row(card: Dict[str, Any]) -> str:
    return f"""
    <tr>
        <td>{esc(card.get('cardType') or '')}</td>
        <td>{esc(card.get('cardValue') or '')}</td>
        <td>{esc(card.get('batchLabel') or '')}</td>
        <td>{esc(card.get('expiresAt') or '')}</td>
        <td>
            <form class="inline" method="post" action="/admin-gift-cards/pool/{esc(card.get('id'))}/delete">
                <button class="btn small danger" type="submit">Delete</button>
            </form>
        </td>
    </tr>
    """


def gift_cards_page(
    pool: PoolStatus,
    eligible: List[Dict[str, Any]],
    sent: PageOut,
    available: PageOut,
    notification: Optional[Notification] = None,
) -> HTMLResponse:
    pool_options = "".join(
        f'<option value="{esc(c.get("id"))}">{esc(c.get("cardType"))} {esc(c.get("cardValue"))}</option>'
        for c in available.content
    )
    eligible_rows = "".join(_eligible_row(p, pool_options) for p in eligible) \
        or '<tr><td colspan="5">No eligible participants</td></tr>'
    sent_rows = "".join(_sent_row(c) for c in sent.content) or '<tr><td colspan="6">No gift cards sent</td></tr>'
    pool_rows = "".join(_pool_row(c) for c in available.content) \
        or '<tr><td colspan="5">No cards available</td></tr>'
    body = f"""
    <div class="card">
        <h2>Gift Card Pool</h2>
        {_pool_status(pool)}
    </div>
    {_add_card_form()}
    <div class="card">
        <h2>Eligible Participants</h2>
        <table>
            <thead><tr><th>Name</th><th>Phone</th><th>Email</th><th>Completed</th><th>Send</th></tr></thead>
            <tbody>{eligible_rows}</tbody>
        </table>
    </div>
    <div class="card">
        <h2>Sent Gift Cards ({sent.total_elements})</h2>
        <table>
            <thead><tr><th>Phone</th><th>Card</th><th>Status</th><th>Sent</th><th>Notes</th><th></th></tr></thead>
            <tbody>{sent_rows}</tbody>
        </table>
    </div>
    <div class="card">
        <h2>Available Pool Cards ({available.total_elements})</h2>
        <table>
            <thead><tr><th>Type</th><th>Value</th><th>Batch</th><th>Expires</th><th></th></tr></thead>
            <tbody>{pool_rows}</tbody>
        </table>
    </div>
    """
    return admin_page("Gift Cards", body, notification)


def gift_card_logs_page(gift_card_id: str, logs: List[Dict[str, Any]]) -> HTMLResponse:
    rows = "".join(
        f"<tr><td>{esc(entry.get('action'))}</td><td>{esc(entry.get('performedBy') or '')}</td>"
        f"<td>{esc(entry.get('details') or '')}</td><td>{esc(entry.get('createdAt') or '')}</td></tr>"
        for entry in logs
    ) or '<tr><td colspan="4">No distribution history</td></tr>'
    body = f"""
    <div class="card">
        <h2>Distribution Log</h2>
        <p>Gift card {esc(gift_card_id)}</p>
        <table>
            <thead><tr><th>Action</th><th>By</th><th>Details</th><th>When</th></tr></thead>
            <tbody>{rows}</tbody>
        </table>
        <p><a href="/admin-gift-cards">Back to gift cards</a></p>
    </div>
    """
    return admin_page("Distribution Log", body)


# -------------------------------------------
# Enrollment
# -------------------------------------------

def enrollment_page(config: EnrollmentConfig, notification: Optional[Notification] = None) -> HTMLResponse:
    max_value = "" if config.max_participants is None else config.max_participants
    remaining = "unlimited" if config.remaining_spots < 0 else config.remaining_spots
    body = f"""
    <div class="card">
        <h2>Enrollment</h2>
        <p>Status: <b>{esc(config.status or ('ACTIVE' if config.is_enrollment_active else 'INACTIVE'))}</b></p>
        <p>Enrolled: <b>{config.current_count}</b> | Remaining spots: <b>{remaining}</b></p>
        <form method="post" action="/admin-enrollment">
            <label>Maximum participants (blank for no limit)
                <input type="number" name="max_participants" min="0" value="{max_value}">
            </label>
            <label><input type="checkbox" name="is_active" value="yes"{" checked" if config.is_enrollment_active else ""}> Enrollment open</label>
            <p><button class="btn" type="submit">Save</button></p>
        </form>
        {f"<p><small>Last updated by {esc(config.updated_by)}</small></p>" if config.updated_by else ""}
    </div>
    """
    return admin_page("Enrollment", body, notification)
