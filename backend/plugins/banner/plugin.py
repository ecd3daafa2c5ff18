TITLE = 'Quarkboard'


def contribute_markup(document):
    header = document.create_element('header', {'class': 'qb-banner'})
    heading = document.create_element('h1')
    document.append_child(heading, document.create_text(TITLE))
    document.append_child(header, heading)
    body = document.body
    children = document.children(body)
    document.insert_before(body, header, children[0] if children else None)
