from sqlstore.descriptors import LazyField


class Counter:
    def __init__(self):
        self.calls = 0

    @LazyField
    def value(self):
        self.calls += 1
        return self.calls * 10


class TestLazyField:

    def test_computed_once(self):
        obj = Counter()
        assert obj.value == 10
        assert obj.value == 10
        assert obj.calls == 1

    def test_per_instance(self):
        a, b = Counter(), Counter()
        assert a.value == 10
        assert b.value == 10
        assert (a.calls, b.calls) == (1, 1)

    def test_class_access_returns_descriptor(self):
        assert isinstance(Counter.value, LazyField)
        assert Counter.value.attr_name == "value"

    def test_invalidate(self):
        obj = Counter()
        assert obj.value == 10
        assert Counter.value.is_loaded(obj)
        Counter.value.invalidate(obj)
        assert not Counter.value.is_loaded(obj)
        assert obj.value == 20

    def test_falsy_values_are_cached(self):
        calls = []

        class Flag:
            @LazyField
            def enabled(self):
                calls.append(1)
                return False

        flag = Flag()
        assert flag.enabled is False
        assert flag.enabled is False
        assert calls == [1]
