def set_body(message, content, content_type):
    """
    Set a textual body of the given content type on an engine message.

    If the message has no top-level body, an existing child part of the
    same content type is replaced (keeping its charset); otherwise the
    content becomes the top-level body. If a top-level body of the same
    content type exists it is overridden, and if its content type differs
    the message is split into two alternative parts: the old body first,
    then the new one.

    Args:
        message: A ``MailMessage`` engine instance, mutated in place.
        content: Body content.
        content_type: Body content type, e.g. ``text/plain``.
    """
    old_body = message.body
    charset = message.charset

    if not old_body:
        parts = list(message.get_children())
        found = False
        for index, part in enumerate(parts):
            if message.is_attachment(part):
                continue
            if part.content_type == content_type:
                charset = part.charset or charset
                del parts[index]
                found = True
                break

        if found:
            message.set_children(parts)
            message.add_part(content, content_type, charset)
        else:
            message.set_body(content, content_type)
        return

    old_content_type = message.content_type
    if old_content_type == content_type:
        message.set_body(content, content_type)
    else:
        message.set_body(None)
        message.set_content_type(None)
        message.add_part(old_body, old_content_type, charset)
        message.add_part(content, content_type, charset)
