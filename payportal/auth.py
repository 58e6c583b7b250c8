from fastapi import Depends, Request, Response

from payportal.csrf import HEADER_NAME
from payportal.sessions import IssuedSession, Namespace, Principal, PrincipalKind


def get_services(request: Request):
    return request.app.state.services


def _session_dependency(kind: PrincipalKind, mutating: bool):
    def dependency(request: Request, services=Depends(get_services)) -> Principal:
        namespace = services.authenticator.namespaces[kind]
        header = request.headers.get(HEADER_NAME)

        # forgery check runs before the session is trusted for anything
        if mutating:
            services.gate.check_double_submit(request.cookies.get(namespace.csrf_cookie_name), header)

        claims = services.authenticator.decode(request.cookies.get(namespace.cookie_name), kind)
        if mutating:
            services.gate.check_binding(header, claims.session_id)

        return services.authenticator.resolve(claims)

    return dependency


current_customer = _session_dependency(PrincipalKind.CUSTOMER, mutating=False)
customer_mutation = _session_dependency(PrincipalKind.CUSTOMER, mutating=True)
current_staff = _session_dependency(PrincipalKind.STAFF, mutating=False)
staff_mutation = _session_dependency(PrincipalKind.STAFF, mutating=True)


def set_session_cookies(response: Response, namespace: Namespace, issued: IssuedSession,
                        csrf_token: str, secure: bool) -> None:
    response.set_cookie(
        namespace.cookie_name,
        issued.token,
        max_age=namespace.ttl,
        httponly=True,
        secure=secure,
        samesite="strict",
    )
    # readable by the page so it can echo it back in the header
    response.set_cookie(
        namespace.csrf_cookie_name,
        csrf_token,
        max_age=namespace.ttl,
        httponly=False,
        secure=secure,
        samesite="strict",
    )


def clear_session_cookies(response: Response, namespace: Namespace, secure: bool) -> None:
    response.delete_cookie(namespace.cookie_name, httponly=True, secure=secure, samesite="strict")
    response.delete_cookie(namespace.csrf_cookie_name, secure=secure, samesite="strict")
