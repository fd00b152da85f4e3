import concurrent.futures
import threading
import typing

from .exceptions import PromiseAlreadyResolvedError

T = typing.TypeVar("T")


class Deferred(typing.Generic[T]):
    """
    A deferred object encapsulates a lazy evaluated value.
    It takes a function that yields the value for its constructor argument, and
    it behaves as a callable by which it resolves to the yielded value.

    Property declarations use it to refer to entity classes that are not
    defined yet::

        children = Property(Deferred(lambda: Node), allow_null=True)

    :param Callable[..., T] yielder: a callable that resolves the value.
    :param args: positional arguments for the yielder.
    :param kwargs: keyword arguments for the yielder.
    """

    _yielder: typing.Optional[typing.Callable[..., T]] = None
    _value_yielded: bool = False
    _value: typing.Optional[T] = None
    _args: typing.Sequence[typing.Any]
    _kwargs: typing.Mapping[str, typing.Any]

    def __init__(self, yielder: typing.Callable[..., T], *args, **kwargs) -> None:
        self._yielder = yielder
        self._args = args
        self._kwargs = kwargs

    def __call__(self) -> T:
        if not self._value_yielded:
            assert self._yielder is not None
            self._value = self._yielder(*self._args, **self._kwargs)
            self._value_yielded = True
        return typing.cast(T, self._value)


class NeverType:
    pass


Never = NeverType()


class Promise(typing.Generic[T]):
    """
    A :py:class:`Promise` is an asynchronous result that settles exactly once,
    either to a value (:py:meth:`resolve`) or to an exception (:py:meth:`reject`).

    Continuations registered with :py:meth:`then` and :py:meth:`catch` run on
    the thread that settles the promise, or immediately on the registering
    thread if the promise has already settled.  Each continuation yields a new
    promise; a continuation returning a :py:class:`Promise` is flattened into it.
    """

    _lock: threading.Condition
    _value: typing.Union[T, NeverType]
    _error: typing.Optional[BaseException]
    _callbacks: typing.List[typing.Callable[[], None]]
    _locked_in: bool

    @property
    def done(self) -> bool:
        with self._lock:
            return self._settled()

    @property
    def rejected(self) -> bool:
        with self._lock:
            return self._error is not None

    def _settled(self) -> bool:
        return self._error is not None or self._value is not Never

    def _settle(
        self,
        value: typing.Union[T, NeverType],
        error: typing.Optional[BaseException],
        adopted: bool = False,
    ) -> None:
        with self._lock:
            if self._settled() or (self._locked_in and not adopted):
                raise PromiseAlreadyResolvedError()
            self._value = value
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
            self._lock.notify_all()
        for callback in callbacks:
            callback()

    def resolve(self, value: T) -> None:
        if value is self:
            raise TypeError("a promise cannot be resolved with itself")
        if isinstance(value, Promise):
            with self._lock:
                if self._settled() or self._locked_in:
                    raise PromiseAlreadyResolvedError()
                self._locked_in = True
            value._subscribe(self._adopt(value))
            return
        self._settle(value, None)

    def reject(self, error: BaseException) -> None:
        self._settle(Never, error)

    def _adopt(self, other: "Promise[T]") -> typing.Callable[[], None]:
        def _():
            self._settle(other._value, other._error, adopted=True)

        return _

    def _subscribe(self, callback: typing.Callable[[], None]) -> None:
        with self._lock:
            if not self._settled():
                self._callbacks.append(callback)
                return
        callback()

    def then(
        self,
        on_success: typing.Optional[typing.Callable[[T], typing.Any]] = None,
        on_failure: typing.Optional[typing.Callable[[BaseException], typing.Any]] = None,
    ) -> "Promise[typing.Any]":
        derived: Promise[typing.Any] = Promise()

        def _():
            error = self._error
            try:
                if error is None:
                    if on_success is None:
                        derived.resolve(self._value)
                    else:
                        derived.resolve(on_success(typing.cast(T, self._value)))
                else:
                    if on_failure is None:
                        derived.reject(error)
                    else:
                        derived.resolve(on_failure(error))
            except Exception as e:
                derived.reject(e)

        self._subscribe(_)
        return derived

    def catch(
        self, on_failure: typing.Callable[[BaseException], typing.Any]
    ) -> "Promise[typing.Any]":
        return self.then(None, on_failure)

    def result(self, timeout: typing.Optional[float] = None) -> T:
        """
        Blocks until the promise settles and returns its value, or raises the
        exception it was rejected with.

        :param Optional[float] timeout: seconds to wait before giving up.
        :raises TimeoutError: when the promise does not settle in time.
        """
        with self._lock:
            if not self._lock.wait_for(self._settled, timeout):
                raise TimeoutError("promise did not settle in time")
            if self._error is not None:
                raise self._error
            return typing.cast(T, self._value)

    def exception(self, timeout: typing.Optional[float] = None) -> typing.Optional[BaseException]:
        with self._lock:
            if not self._lock.wait_for(self._settled, timeout):
                raise TimeoutError("promise did not settle in time")
            return self._error

    @classmethod
    def resolved(cls, value: T) -> "Promise[T]":
        promise: Promise[T] = cls()
        promise.resolve(value)
        return promise

    @classmethod
    def rejected_with(cls, error: BaseException) -> "Promise[typing.Any]":
        promise: Promise[typing.Any] = cls()
        promise.reject(error)
        return promise

    @classmethod
    def from_future(cls, future: "concurrent.futures.Future[T]") -> "Promise[T]":
        promise: Promise[T] = cls()

        def _(f: "concurrent.futures.Future[T]") -> None:
            error = f.exception()
            if error is not None:
                promise.reject(error)
            else:
                promise.resolve(f.result())

        future.add_done_callback(_)
        return promise

    def __repr__(self) -> str:
        with self._lock:
            if self._error is not None:
                state = f"rejected {self._error!r}"
            elif self._value is not Never:
                state = f"resolved {self._value!r}"
            else:
                state = "pending"
        return f"<{type(self).__name__} {state}>"

    def __init__(self):
        self._lock = threading.Condition()
        self._value = Never
        self._error = None
        self._callbacks = []
        self._locked_in = False
