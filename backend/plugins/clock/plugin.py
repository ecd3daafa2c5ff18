def contribute_markup(document):
    board = document.element_by_id('board')
    parent = board if board is not None else document.body
    document.append_html(parent, '<section class="qb-clock"><time id="qb-clock-now">--:--</time></section>')
