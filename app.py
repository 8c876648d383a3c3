import csv
import io
import os
from datetime import datetime
from functools import wraps

from flask import Flask, request, session, jsonify, Response, url_for

import settings
from attendance import arrivals_payload, build_roster, cohort_records, fetch_attendance, submit_attendance, today_str
from auth import SessionContext, authenticate
from filter_engine import FilterState, as_text, count_matching
from messaging import send_bulk_messages
from payments import (build_iframe_url, create_handshake, get_payment_page, load_iframe_html,
                      search_payment_pages, validate_payer)
from record_store import RecordStoreError, SnapshotCache, get_record_store
from table_view import RegistrationTable, SortState, parse_shareable_args, shareable_args
from webhooks import UpstreamError

if settings.USE_LOCAL_DB:
    from database import DB_PATH, init_database
    print("=" * 60)
    print("🔧 RUNNING IN LOCAL DEVELOPMENT MODE (SQLite)")
    print("=" * 60)
    # Ensure database is initialized
    if not os.path.exists(DB_PATH):
        print("Initializing local database...")
        init_database()
else:
    print("=" * 60)
    print("☁️  RUNNING IN PRODUCTION MODE (Google Sheets)")
    print("=" * 60)

# --- App Initialization and Configuration ---
app = Flask(__name__)
app.config['SECRET_KEY'] = settings.SECRET_KEY
app.json.ensure_ascii = False
app.config['RECORD_STORE'] = None
app.config['HTTP_CLIENT'] = None

EXPORT_COLUMNS = [
    ("child_name", "שם הילד"),
    ("cycle", "מחזור"),
    ("parent_phone", "טלפון הורה"),
    ("parent_name", "שם מלא הורה"),
    ("course", "חוג"),
    ("school", "בית ספר"),
    ("class", "כיתה"),
    ("needs_pickup", "האם צריך איסוף מהצהרון"),
    ("trial_date", "תאריך הגעה לשיעור ניסיון"),
    ("in_whatsapp_group", "האם בקבוצת הוואטסאפ"),
    ("registration_status", "סטטוס רישום לחוג"),
    ("discount_type", "סוג הנחה"),
]

# Fields the arrivals roster can be narrowed by (exact match).
ARRIVAL_FILTER_FIELDS = ("course", "school", "class")


# --- Collaborators ---

def get_store():
    if app.config['RECORD_STORE'] is None:
        app.config['RECORD_STORE'] = get_record_store()
    return app.config['RECORD_STORE']


def get_snapshot_cache(ctx):
    cache = app.config.get('SNAPSHOT_CACHE')
    if cache is None or cache.store is not ctx.store:
        cache = SnapshotCache(ctx.store)
        app.config['SNAPSHOT_CACHE'] = cache
    return cache


def current_context():
    return SessionContext(
        staff_name=session.get('full_name', ''),
        store=get_store(),
        http_client=app.config['HTTP_CLIENT'],
    )


def current_table(ctx):
    """The user's table over the shared snapshot, restored from the session."""
    cache = get_snapshot_cache(ctx)
    records, _ = cache.get()
    table = RegistrationTable(records, snapshot_version=cache.version)
    table.load_state(session.get('table_state'))
    return table


def save_table(table):
    session['table_state'] = table.dump_state()


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get('logged_in'):
            return error_response('Login required.', 401)
        return view(*args, **kwargs)
    return wrapped


def error_response(message, status):
    return jsonify({'success': False, 'error': message}), status


def request_data():
    return request.get_json(silent=True) or request.form.to_dict() or {}


@app.errorhandler(RecordStoreError)
def handle_store_error(exc):
    app.logger.error("Record store failure: %s", exc)
    return error_response(str(exc), 502)


@app.errorhandler(UpstreamError)
def handle_upstream_error(exc):
    app.logger.error("Upstream call failed (%s): %s", exc.status_code, exc)
    return error_response(str(exc), 502)


# --- Routes ---

@app.route('/login', methods=['POST'])
def login():
    """Signs a staff member in."""
    data = request_data()
    ctx = current_context()
    full_name = authenticate(ctx.store, data.get('username', ''), data.get('password', ''))
    if not full_name:
        return error_response('Invalid credentials. Please try again.', 401)

    session.pop('table_state', None)
    session['logged_in'] = True
    session['full_name'] = full_name
    return jsonify({'success': True, 'full_name': full_name})


@app.route('/logout', methods=['POST'])
def logout():
    """Logs the user out by clearing the session."""
    session.clear()
    return jsonify({'success': True})


@app.route('/api/registrations')
@login_required
def registrations():
    records, filter_options = get_snapshot_cache(current_context()).get()
    return jsonify({
        'success': True,
        'data': list(records),
        'total': len(records),
        'filterOptions': filter_options,
    })


@app.route('/api/registrations/refresh', methods=['POST'])
@login_required
def refresh_registrations():
    ctx = current_context()
    records, _ = get_snapshot_cache(ctx).refresh()
    app.logger.info("Registrations refreshed by %s: %d records", ctx.staff_name, len(records))
    return jsonify({'success': True, 'total': len(records)})


@app.route('/api/registrations/query', methods=['POST'])
@login_required
def query_registrations():
    """Applies any of filters / search / sort / page sent and returns the visible page."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return error_response('Request body must be a JSON object', 400)
    table = current_table(current_context())

    try:
        if 'filters' in data:
            table.set_filter_state(FilterState.from_dict(data['filters']))
        if 'search' in data:
            table.set_search(data['search'])
        if 'sort' in data:
            table.set_sort(SortState.from_dict(data['sort']))
        if data.get('sort_click'):
            table.click_sort(str(data['sort_click']))
    except ValueError as exc:
        return error_response(str(exc), 400)
    if 'page' in data:
        table.go_to_page(data['page'])

    page_items, pagination = table.current_page()
    save_table(table)
    return jsonify({
        'success': True,
        'data': page_items,
        'pagination': pagination,
        'sort': table.sort_state.to_dict(),
        'search': table.search,
        'filtered_total': len(table.searched()),
        'total': len(table.snapshot),
    })


@app.route('/api/registrations/counts')
@login_required
def registration_counts():
    """Badge counts for one field over the currently filtered registrations."""
    field_name = request.args.get('field')
    if not field_name:
        return error_response('field parameter is required', 400)

    filtered = current_table(current_context()).filtered()
    value = request.args.get('value')
    if value is not None:
        return jsonify({'success': True, 'counts': {value: count_matching(filtered, field_name, value)}})

    counts = {}
    for record in filtered:
        key = as_text(record.get(field_name))
        counts[key] = counts.get(key, 0) + 1
    return jsonify({'success': True, 'counts': counts})


@app.route('/api/registrations/export')
@login_required
def export_registrations():
    rows = current_table(current_context()).ordered()

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([header for _, header in EXPORT_COLUMNS])
    for record in rows:
        writer.writerow([record.get(key, '') for key, _ in EXPORT_COLUMNS])

    csv_data = output.getvalue()
    output.close()

    filename = f"registrations_{datetime.now(settings.PROGRAM_TZ).strftime('%Y%m%d_%H%M%S')}.csv"
    response = Response('\ufeff' + csv_data, mimetype='text/csv')
    response.headers['Content-Disposition'] = f'attachment; filename={filename}'
    return response


@app.route('/api/attendance', methods=['GET'])
@login_required
def get_attendance():
    ctx = current_context()
    history = request.args.get('history', '').lower() in ('1', 'true', 'yes')
    try:
        data = fetch_attendance(request.args.get('cohort'), request.args.get('date'),
                                full_history=history, client=ctx.http_client)
    except ValueError as exc:
        return error_response(str(exc), 400)
    return jsonify({'success': True, 'data': data})


@app.route('/api/attendance', methods=['POST'])
@login_required
def post_attendance():
    ctx = current_context()
    data = request.get_json(silent=True) or {}
    cohort_id = data.get('cohortId')
    arrivals = data.get('arrivals')
    if arrivals is None and isinstance(data.get('marks'), dict) and cohort_id:
        records, _ = get_snapshot_cache(ctx).get()
        arrivals = arrivals_payload(cohort_records(records, cohort_id), data['marks'])

    try:
        result = submit_attendance(cohort_id, data.get('cohortName'), data.get('date'), arrivals,
                                   client=ctx.http_client)
    except ValueError as exc:
        return error_response(str(exc), 400)
    return jsonify(result)


@app.route('/api/arrivals')
@login_required
def arrivals():
    """Cohort roster for one day, joined with the recorded attendance."""
    ctx = current_context()
    state = parse_shareable_args(request.args)
    if not state['cohort']:
        return error_response('cohort parameter is required', 400)

    date = state['date'] or today_str()
    records, _ = get_snapshot_cache(ctx).get()
    attendance = fetch_attendance(state['cohort'], date, client=ctx.http_client)

    narrow = {key: request.args[key] for key in ARRIVAL_FILTER_FIELDS if request.args.get(key)}
    filter_state = FilterState.from_dict({'simple': narrow}) if narrow else None

    roster = build_roster(records, state['cohort'], attendance.get('attendance'),
                          attendance.get('notes'), filter_state=filter_state)
    return jsonify({
        'success': True,
        'data': roster,
        'date': date,
        'cohort': state['cohort'],
        'link': url_for('arrivals', **shareable_args(state['cohort'], date, 'arrivals')),
    })


@app.route('/api/messages/bulk', methods=['POST'])
@login_required
def bulk_messages():
    ctx = current_context()
    data = request.get_json(silent=True) or {}
    options = dict(data)
    registrations = options.pop('registrations', None)
    if options.pop('use_current_view', False):
        registrations = list(current_table(ctx).ordered())

    try:
        result = send_bulk_messages(registrations, options, client=ctx.http_client)
    except ValueError as exc:
        return error_response(str(exc), 400)
    return jsonify(result)


@app.route('/api/payment-pages')
@login_required
def payment_pages():
    pages = search_payment_pages(current_context().store, request.args.get('search', ''))
    return jsonify({'success': True, 'data': pages})


@app.route('/api/payment-pages/<record_id>')
def payment_page(record_id):
    page = get_payment_page(current_context().store, record_id)
    if page is None:
        return error_response('Payment page record not found', 404)
    return jsonify({'success': True, 'data': page})


@app.route('/payment/<record_id>', methods=['POST'])
def start_payment(record_id):
    """Validates the payer form and returns the payment iframe URL."""
    data = request_data()
    page = get_payment_page(current_context().store, record_id)
    if page is None:
        return error_response('Payment page record not found', 404)

    try:
        clean_phone = validate_payer(data.get('parent_name'), data.get('phone'), data.get('email'))
        iframe_url = build_iframe_url(page, data['parent_name'].strip(), clean_phone, data['email'].strip(),
                                      num_payments=data.get('num_payments'))
    except ValueError as exc:
        return error_response(str(exc), 400)
    return jsonify({'success': True, 'iframe_url': iframe_url})


@app.route('/api/payments/handshake', methods=['POST'])
def payment_handshake():
    data = request_data()
    try:
        thtk = create_handshake(data.get('sum'), client=current_context().http_client)
    except ValueError as exc:
        return error_response(str(exc), 400)
    return jsonify({'success': True, 'thtk': thtk})


@app.route('/api/payments/iframe', methods=['POST'])
def payment_iframe():
    try:
        html = load_iframe_html(request.get_json(silent=True), client=current_context().http_client)
    except ValueError as exc:
        return error_response(str(exc), 400)
    return jsonify({'success': True, 'html': html})


if __name__ == '__main__':
    app.run(debug=True)
