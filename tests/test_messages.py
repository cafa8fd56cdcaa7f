from image_cropper.messages import AREA_TOO_SMALL, MESSAGES, MIN_SIZE, MessageBoard


def test_render_is_keyed_and_deduplicated():
    board = MessageBoard()
    assert board.render("Hello")
    assert not board.render("Hello")
    assert board.render("Hello again", key="hello")
    assert board.messages == {"Hello": "Hello", "hello": "Hello again"}
    assert len(board) == 2


def test_render_key_uses_builtin_text():
    board = MessageBoard()
    board.render_key(MIN_SIZE)
    assert list(board) == [MESSAGES[MIN_SIZE]]
    board.render_key("custom")
    assert board.messages["custom"] == "custom"


def test_delete_and_clear():
    board = MessageBoard()
    board.render_key(AREA_TOO_SMALL)
    board.render_key(MIN_SIZE)
    assert board.delete(AREA_TOO_SMALL)
    assert not board.delete(AREA_TOO_SMALL)
    assert not board.has(AREA_TOO_SMALL)
    board.clear()
    assert len(board) == 0


def test_subscribers_are_told_about_changes_only():
    board = MessageBoard()
    calls = []
    callback = lambda b: calls.append(len(b))
    board.subscribe(callback)

    board.render_key(MIN_SIZE)
    board.render_key(MIN_SIZE)
    board.delete("missing")
    board.delete(MIN_SIZE)
    board.clear()
    assert calls == [1, 0]

    board.unsubscribe(callback)
    board.render_key(MIN_SIZE)
    assert calls == [1, 0]


def test_first_render_is_logged(caplog):
    board = MessageBoard()
    with caplog.at_level("WARNING", logger="image_cropper.messages"):
        board.render_key(MIN_SIZE)
        board.render_key(MIN_SIZE)
    assert [r.getMessage() for r in caplog.records] == [MESSAGES[MIN_SIZE]]
