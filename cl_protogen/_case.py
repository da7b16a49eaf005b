"""Case conversions of proto names."""


def kebab_case(name: str) -> str:
    """Convert a CamelCase or snake_case name into lower-case kebab case.

    A hyphen is inserted in front of an upper-case letter that follows a
    lower-case letter or a digit, and in front of the last upper-case letter
    of an acronym that is followed by a lower-case letter. Underscores become
    hyphens.

    >>> kebab_case("PhoneType")
    'phone-type'
    >>> kebab_case("HTTPRequest")
    'http-request'
    >>> kebab_case("PHONE_TYPE_MOBILE")
    'phone-type-mobile'
    """
    out = []
    for i, c in enumerate(name):
        if c == "_":
            out.append("-")
            continue
        if c.isupper():
            prev = name[i - 1] if i > 0 else ""
            nxt = name[i + 1] if i + 1 < len(name) else ""
            if prev.islower() or prev.isdigit():
                out.append("-")
            elif prev.isupper() and nxt.islower():
                out.append("-")
            out.append(c.lower())
        else:
            out.append(c)
    return "".join(out)


def json_name(name: str) -> str:
    """Return the JSON name protoc derives for a field name.

    Underscores are dropped and the letter following an underscore is
    upper-cased.

    >>> json_name("phone_number")
    'phoneNumber'
    """
    out = []
    upper_next = False
    for c in name:
        if c == "_":
            upper_next = True
        elif upper_next:
            out.append(c.upper())
            upper_next = False
        else:
            out.append(c)
    return "".join(out)
