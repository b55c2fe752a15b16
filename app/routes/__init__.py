"""Helpers shared by the JSON blueprints."""

from flask import request, jsonify


def json_body():
    """Request JSON as a dict; form data is accepted for plain HTML posts."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def page_args():
    return {
        'page': request.args.get('page', 1, type=int),
        'per_page': request.args.get('limit', None, type=int),
    }


def flag_arg(name):
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


def ok(data=None, message=None, status=200, **extra):
    payload = {'success': True}
    if message:
        payload['message'] = message
    if data is not None:
        payload['data'] = data
    payload.update(extra)
    return jsonify(payload), status
